"""
Customers module.

Scope:
- Customers CRUD with nested addresses on create
- Customer-scoped address add/update/delete
- Primary-address exclusivity and the "only one address" flag
- Search/filter/sort/paginate listing
"""
