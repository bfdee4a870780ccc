"""
Contact, Product and Supplier repositories.
"""

from app.models.db.crm import Contact, Product, Supplier
from app.repositories.base import TenantScopedRepository


class ContactRepository(TenantScopedRepository[Contact]):
    model = Contact
    search_columns = ("firstname", "lastname", "email", "company")
    order_by = ("lastname", "firstname")


class ProductRepository(TenantScopedRepository[Product]):
    model = Product
    search_columns = ("name", "sku", "category")
    order_by = ("name",)


class SupplierRepository(TenantScopedRepository[Supplier]):
    model = Supplier
    search_columns = ("name", "email")
    order_by = ("name",)
