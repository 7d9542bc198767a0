from localinsights.features.businesses.models.business import Business

__all__ = ["Business"]
