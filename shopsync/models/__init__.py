from shopsync.models.product import Product
from shopsync.models.variant import Variant
from shopsync.models.image import ProductImage
from shopsync.models.bulk_operation import BulkOperation

__all__ = ["Product", "Variant", "ProductImage", "BulkOperation"]
