# bentamate/domain/catalog/merge.py
from typing import Any, Dict, Iterable, List, Mapping, Union

from bentamate.domain.catalog.schemas import PendingProductOp, Product, ProductAction

ProductLike = Union[Product, Mapping[str, Any]]


def apply_pending_ops(
    server_snapshot: Iterable[ProductLike],
    pending_ops: Iterable[PendingProductOp],
) -> List[Product]:
    """Fold unsynced catalog mutations over a fetched product list.

    Ops are applied in the order given. A create for an id already present is
    ignored, an update or delete for an unknown id too. Created products go to
    the front, like a list ordered newest first. Products touched by an op are
    flagged ``offline``.
    """
    products: List[Dict[str, Any]] = [_as_dict(product) for product in server_snapshot]

    for op in pending_ops:
        index = _find(products, op.product_id)

        if op.action == ProductAction.CREATE:
            if index is None:
                products.insert(0, {**op.data, "id": op.product_id, "user_id": op.user_id, "offline": True})
        elif op.action == ProductAction.UPDATE:
            if index is not None:
                products[index] = {**products[index], **op.data, "id": op.product_id, "offline": True}
        elif op.action == ProductAction.DELETE:
            if index is not None:
                del products[index]

    return [Product.model_validate(product) for product in products]


def _as_dict(product: ProductLike) -> Dict[str, Any]:
    if isinstance(product, Product):
        return product.model_dump(exclude={"status"})
    data = dict(product)
    data.pop("status", None)
    return data


def _find(products: List[Dict[str, Any]], product_id: str):
    for index, product in enumerate(products):
        if str(product.get("id")) == str(product_id):
            return index
    return None
