"""
Commerce Modules.

Thin orchestration layers over the commerce kernel and engines.
Each module contains:
- Domain models (the nouns)
- ORM persistence models
- Workflows (state and conversion tables)
- Services (the transaction boundary)

Modules:
- Catalog: products, clients, suppliers, warehouses
- Documents: sales and purchase documents, conversions, returns
- Inventory: warehouse stock, movement ledger, transfers
"""
