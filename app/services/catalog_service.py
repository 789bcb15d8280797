"""Catalog service - builds the pricing engine's catalog snapshot from the DB."""

import logging
from typing import List, Optional

from flask import current_app, has_app_context
from sqlalchemy.orm import Session, joinedload

from app.models import Product, Scheme
from app.pricing.types import (
    CatalogProduct, CatalogScheme, CatalogSnapshot, GiftProduct, SchemeScope, to_decimal,
)

logger = logging.getLogger(__name__)

CACHE_MODULE = 'catalog'
CACHE_KEY = 'snapshot'


def gift_from_config(config) -> GiftProduct:
    """Order-level gift product as configured for the deployment."""
    return GiftProduct(
        product_id=config.get('ORDER_GIFT_PRODUCT_ID', 'order-scheme-bag'),
        name=config.get('ORDER_GIFT_NAME', 'Traveler Bag'),
        category=config.get('ORDER_GIFT_CATEGORY', 'Accessories'),
        unit_of_measure=config.get('ORDER_GIFT_UOM', 'Item'),
    )


def to_catalog_product(product: Product) -> CatalogProduct:
    return CatalogProduct(
        product_id=product.product_id,
        name=product.name,
        category=product.category or '',
        mrp=to_decimal(product.mrp),
        ptr=to_decimal(product.ptr),
        unit_of_measure=product.unit_of_measure,
        scheme_id=product.product_scheme_id,
        buy_qty=product.product_scheme_buy_qty,
        get_qty=product.product_scheme_get_qty,
        offer_product_id=product.product_item_offer_id,
        offer_product_name=product.offer_product_name,
    )


def to_catalog_scheme(scheme: Scheme) -> CatalogScheme:
    try:
        scope = SchemeScope(scheme.scheme_scope)
    except ValueError:
        scope = SchemeScope.PRODUCT
    return CatalogScheme(
        scheme_id=scheme.scheme_id,
        scope=scope,
        text=scheme.scheme_text or '',
        min_price=None if scheme.scheme_min_price is None else to_decimal(scheme.scheme_min_price),
    )


def build_catalog_snapshot(session: Session, gift: Optional[GiftProduct] = None) -> CatalogSnapshot:
    """Read active schemes and products into an immutable snapshot."""
    schemes = session.query(Scheme).filter(Scheme.is_active == True).all()  # noqa: E712

    products = (
        session.query(Product)
        .options(joinedload(Product.offer_product))
        .filter(Product.is_active == True)  # noqa: E712
        .order_by(Product.name)
        .all()
    )

    snapshot = CatalogSnapshot.build(
        products=[to_catalog_product(p) for p in products],
        schemes=[to_catalog_scheme(s) for s in schemes],
        gift=gift,
    )
    logger.info(
        "Catalog snapshot built: %d products, %d schemes",
        len(snapshot.products), len(snapshot.schemes)
    )
    return snapshot


def load_catalog(session: Session, use_cache: bool = True) -> CatalogSnapshot:
    """
    Catalog snapshot for the current request.

    Cache-aside through Redis when available; the DB is the fallback.
    """
    gift = gift_from_config(current_app.config) if has_app_context() else None

    if not use_cache or not has_app_context():
        return build_catalog_snapshot(session, gift)

    from app.services.cache_service import get_cache
    cache = get_cache()
    ttl = current_app.config.get('CACHE_CATALOG_TTL', 300)
    data = cache.memoize(
        CACHE_MODULE, CACHE_KEY,
        lambda: build_catalog_snapshot(session, gift).to_dict(),
        ttl=ttl
    )
    return CatalogSnapshot.from_dict(data)


def invalidate_catalog_cache() -> None:
    """Drop the cached snapshot after catalog changes."""
    try:
        from app.services.cache_service import get_cache
        get_cache().bump_version(CACHE_MODULE)
    except RuntimeError as e:
        logger.warning(f"Catalog cache not invalidated: {e}")


def list_categories(catalog: CatalogSnapshot) -> List[str]:
    """Category tabs for the order screen, 'Popular' first."""
    categories = sorted({p.category for p in catalog.products.values() if p.category})
    return ['Popular'] + categories
