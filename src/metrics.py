"""Prometheus metrics for the catalog mirror."""

from prometheus_client import Counter, Gauge, Histogram, Info

# Application info
app_info = Info("catalog_mirror", "Catalog mirror application info")
app_info.info({"version": "0.1.0", "name": "catalog-mirror"})

# Crawl metrics
pages_crawled_total = Counter(
    "catalog_pages_crawled_total",
    "Total number of pages visited by crawl operations",
    ["operation", "outcome"],
)

scrape_failures_total = Counter(
    "catalog_scrape_failures_total",
    "Total number of non-fatal scrape failures",
    ["operation", "reason"],
)

crawl_duration_seconds = Histogram(
    "catalog_crawl_duration_seconds",
    "Time spent in one crawl operation",
    ["operation"],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
)

# Cache metrics
cache_hits_total = Counter(
    "catalog_cache_hits_total",
    "Requests served from the local store without crawling",
    ["operation"],
)

# Store metrics
products_stored_total = Counter(
    "catalog_products_stored_total",
    "Total number of product rows written",
    ["source"],
)

category_offset = Gauge(
    "catalog_category_offset",
    "Stored pagination offset per category",
    ["category_id"],
)


def record_page(operation: str, outcome: str, duration: float):
    """Record one crawled page and how long the operation took."""
    pages_crawled_total.labels(operation=operation, outcome=outcome).inc()
    crawl_duration_seconds.labels(operation=operation).observe(duration)


def record_failure(operation: str, reason: str):
    """Record a failure that was downgraded to "no data"."""
    scrape_failures_total.labels(operation=operation, reason=reason).inc()


def record_cache_hit(operation: str):
    cache_hits_total.labels(operation=operation).inc()


def record_products_stored(source: str, count: int):
    if count:
        products_stored_total.labels(source=source).inc(count)


def record_category_offset(category_id: int, offset: int):
    category_offset.labels(category_id=str(category_id)).set(offset)
