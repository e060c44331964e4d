"""Admin mutations: design publishing, product prices, and the order list.

Publish Checkboxes
------------------
The Designs section renders one checkbox per T-shirt design and expects the
submitted form to name exactly the checked ones.  Form field names do not
survive every character an id may hold (some form parsers rewrite
``.`` to ``_``, for instance), and generated ids always contain a dot.  The
field name is therefore built with a reversible escape that uses ``-`` as
the escape character: ``-`` becomes ``--`` and ``.`` becomes ``-d``::

    ts_65f1a2b3c4d5e.12345678  <->  publish_ts_65f1a2b3c4d5e-d12345678
    ts_a-b.c                   <->  publish_ts_a--b-dc

Distinct ids always yield distinct field names, and the same helpers are
used to build the form and to read it back.  Price inputs use the same
escape with a ``price_`` prefix.

Products
--------
``merch_products.json`` holds ``{id, name, price}`` objects.  Existing prices
are replaced only by positive numbers; a new product is added only when its
id is non-empty and unused (case-sensitive), its name is non-empty and its
price is a positive number.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from merchstudio.core.json_store import JsonFile
from merchstudio.core.record_store import DesignRecordStore

logger = logging.getLogger(__name__)

PUBLISH_PREFIX = "publish_"
PRICE_PREFIX = "price_"
PUBLISH_STORE = "tshirt"


ESCAPE = "-"
_ESCAPES = {"-": "--", ".": "-d"}
_UNESCAPES = {"-": "-", "d": "."}


def sanitize_id(value: str) -> str:
    """Escape *value* into a token free of dots."""
    return "".join(_ESCAPES.get(char, char) for char in value)


def restore_id(token: str) -> str | None:
    """Reverse :func:`sanitize_id`; ``None`` if *token* is not a valid escape."""
    chars: list[str] = []
    index = 0
    while index < len(token):
        char = token[index]
        if char != ESCAPE:
            chars.append(char)
            index += 1
            continue
        escaped = _UNESCAPES.get(token[index + 1 : index + 2])
        if escaped is None:
            return None
        chars.append(escaped)
        index += 2
    return "".join(chars)


def publish_field_name(design_id: str) -> str:
    """Return the checkbox field name for *design_id*."""
    return PUBLISH_PREFIX + sanitize_id(design_id)


def design_id_from_field(field_name: str) -> str | None:
    """Reverse :func:`publish_field_name`; ``None`` for unrelated fields."""
    if not field_name.startswith(PUBLISH_PREFIX):
        return None
    return restore_id(field_name[len(PUBLISH_PREFIX) :])


def price_field_name(product_id: str) -> str:
    """Return the price input name for *product_id*."""
    return PRICE_PREFIX + sanitize_id(product_id)


def apply_publish_form(
    records: DesignRecordStore, form_keys: Iterable[str], store_id: str = PUBLISH_STORE
) -> int:
    """Publish exactly the designs whose checkbox is present in *form_keys*.

    Returns:
        The number of records whose flag changed.
    """
    published = {
        design_id
        for design_id in (design_id_from_field(name) for name in form_keys)
        if design_id
    }
    return records.set_published(store_id, published)


def parse_price(value: object) -> float | None:
    """Return *value* as a positive finite float, else ``None``."""
    if value is None or isinstance(value, bool):
        return None
    try:
        price = float(str(value).strip())
    except ValueError:
        return None
    if not math.isfinite(price) or price <= 0:
        return None
    return price


@dataclass
class UpsertResult:
    """Outcome of one product form submission."""

    updated: list[str] = field(default_factory=list)
    added: str | None = None
    rejected_reason: str | None = None

    @property
    def message(self) -> str:
        if self.rejected_reason:
            return self.rejected_reason
        return "Products updated."


class ProductCatalog:
    """``merch_products.json`` access."""

    def __init__(self, path: Path) -> None:
        self._file = JsonFile(path, default=list)

    def list(self) -> list[dict]:
        return [p for p in self._file.read() if isinstance(p, dict)]

    def update(
        self,
        prices: Mapping[str, object],
        new_product: Mapping[str, object] | None = None,
    ) -> UpsertResult:
        """Apply price edits and an optional new product in one locked write.

        Args:
            prices: Submitted form values keyed by :func:`price_field_name`.
            new_product: Optional ``{"id", "name", "price"}`` values.
        """
        result = UpsertResult()

        def apply(products: list) -> None:
            for product in products:
                if not isinstance(product, dict) or "id" not in product:
                    continue
                price = parse_price(prices.get(price_field_name(str(product["id"]))))
                if price is not None and price != product.get("price"):
                    product["price"] = price
                    result.updated.append(str(product["id"]))

            if not new_product:
                return
            new_id = str(new_product.get("id") or "").strip()
            new_name = str(new_product.get("name") or "").strip()
            raw_price = new_product.get("price")
            if not new_id and not new_name and not str(raw_price or "").strip():
                return
            new_price = parse_price(raw_price)
            if not new_id or not new_name or new_price is None:
                result.rejected_reason = (
                    "New products need an id, a name and a positive price."
                )
                return
            if any(isinstance(p, dict) and p.get("id") == new_id for p in products):
                result.rejected_reason = f"A product with id {new_id} already exists."
                return
            products.append({"id": new_id, "name": new_name, "price": new_price})
            result.added = new_id

        self._file.update(apply)
        if result.rejected_reason:
            logger.info(f"Product upsert rejected: {result.rejected_reason}")
        else:
            logger.info(f"Products updated: {len(result.updated)} price(s), added={result.added}")
        return result


class OrderBook:
    """Read-only view of ``orders.json``."""

    def __init__(self, path: Path) -> None:
        self._file = JsonFile(path, default=list)

    def list(self) -> list[dict]:
        """Orders newest first."""
        return list(reversed([o for o in self._file.read() if isinstance(o, dict)]))
