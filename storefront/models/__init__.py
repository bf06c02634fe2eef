from storefront.models.product import Product
from storefront.models.variant import VariantOption
from storefront.models.audit_log import AuditLog

__all__ = ["Product", "VariantOption", "AuditLog"]
