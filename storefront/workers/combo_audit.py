"""RQ worker job: audit a product's combination links after a variant edit."""
import logging
from redis.exceptions import LockError
from flask import current_app, has_app_context
from storefront import create_app
from storefront import extensions as ext
from storefront.extensions import db
from storefront.models.product import Product
from storefront.models.audit_log import AuditLog
from storefront.services.variant_service import orphaned_combo_keys

logger = logging.getLogger(__name__)

_worker_app = None


def _get_app():
    """Return an app instance for worker execution.

    Reuse the current app when already inside an app context (tests/CLI),
    otherwise lazily create the worker app once.
    """
    global _worker_app
    if has_app_context():
        return current_app._get_current_object()
    if _worker_app is None:
        _worker_app = create_app()
    return _worker_app


def audit_combination_links(product_id, actor="worker"):
    """Record combination-link keys the current group order cannot reach.

    Keys go stale when groups are reordered or renamed after the links were
    saved. They are logged and written to the audit log for the admin to
    fix; the stored links are never rewritten here.

    Returns the list of orphaned keys.
    """
    app = _get_app()
    with app.app_context():
        product = db.session.get(Product, product_id)
        if not product:
            logger.error("Product %d not found", product_id)
            return []

        # Skip if another worker is already auditing this product
        lock = None
        if ext.redis_client is not None:
            lock = ext.redis_client.lock(f"combo_audit:{product_id}", timeout=120)
            if not lock.acquire(blocking=False):
                logger.info("Lock held for product %d, skipping", product_id)
                return []

        try:
            orphaned = orphaned_combo_keys(
                product.variant_groups, product.variant_option_links
            )
            if not orphaned:
                logger.info("No orphaned combination links for %s", product.slug)
                return []

            logger.warning(
                "%d orphaned combination link(s) for %s: %s",
                len(orphaned),
                product.slug,
                orphaned,
            )
            db.session.add(
                AuditLog(
                    actor=actor,
                    action="ORPHANED_COMBO_LINKS",
                    product_id=product.id,
                    payload={
                        "orphaned": orphaned,
                        "groups": [g.name for g in product.variant_groups],
                    },
                )
            )
            db.session.commit()
            return orphaned

        except Exception:
            logger.exception("Combination audit failed for product %d", product_id)
            db.session.rollback()
            raise  # let RQ handle retry

        finally:
            if lock is not None:
                try:
                    lock.release()
                except LockError:
                    pass  # lock may have expired
