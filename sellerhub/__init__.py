"""
Seller order-management engine.

Reads heterogeneous order documents from Firestore, normalizes them into one
`Order` shape, enriches them from the product catalog and drives the
fulfillment workflow (packing stages, status changes, return requests).
"""
