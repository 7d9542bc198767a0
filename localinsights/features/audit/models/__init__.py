from localinsights.features.audit.models.website_audit import WebsiteAudit

__all__ = ["WebsiteAudit"]
