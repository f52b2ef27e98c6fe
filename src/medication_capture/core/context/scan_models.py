# ============================================================================
# src/medication_capture/core/context/scan_models.py
# ============================================================================
"""
Inputs from the capture collaborators and registry results
- ScannedCode: barcode decode engine output
- RecognizedWord / RecognitionResult: image recognition engine output
- DrugRecord / ActiveIngredient: drug registry entry
- RetailProduct: retail product registry entry
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .enums import Symbology
from ..bbox_utils import BBox, fix_bbox_ordering


@dataclass(frozen=True)
class ScannedCode:
    raw: str
    symbology: Symbology = Symbology.UNKNOWN

    @classmethod
    def from_decoder(cls, raw: str, symbology: Any = None) -> "ScannedCode":
        return cls(raw=(raw or "").strip(), symbology=Symbology.parse(symbology))


@dataclass(frozen=True)
class RecognizedWord:
    text: str
    # (x0, y0, x1, y1) in source image pixels
    bbox: BBox
    confidence: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecognizedWord":
        """
        Build from a recognition engine word entry.

        Accepts {"bbox": {"x0":..,"y0":..,"x1":..,"y1":..}} (Tesseract) as
        well as {"bbox": [x0, y0, x1, y1]}.
        """
        raw_box = data.get("bbox")
        if isinstance(raw_box, dict):
            box = (raw_box["x0"], raw_box["y0"], raw_box["x1"], raw_box["y1"])
        else:
            box = tuple(raw_box)

        return cls(
            text=str(data.get("text", "")),
            bbox=fix_bbox_ordering(tuple(float(v) for v in box)),
            confidence=float(data.get("confidence") or 0.0),
        )


@dataclass(frozen=True)
class RecognitionResult:
    text: str
    words: Tuple[RecognizedWord, ...] = ()
    confidence: float = 0.0
    image_ref: Optional[str] = None
    image_width: Optional[int] = None
    image_height: Optional[int] = None


@dataclass(frozen=True)
class ActiveIngredient:
    name: str
    strength: Optional[str] = None


@dataclass(frozen=True)
class DrugRecord:
    brand_name: Optional[str] = None
    generic_name: Optional[str] = None
    dosage_form: Optional[str] = None
    routes: Tuple[str, ...] = ()
    active_ingredients: Tuple[ActiveIngredient, ...] = ()
    product_ndc: Optional[str] = None

    @property
    def display_name(self) -> Optional[str]:
        return self.brand_name or self.generic_name

    @classmethod
    def from_openfda(cls, payload: Dict[str, Any]) -> "DrugRecord":
        """
        Build from one entry of an openFDA /drug/ndc.json `results` list.

        Raises:
            TypeError: `route` or `active_ingredients` is not a list, or an
                ingredient entry is not an object
        """
        routes = payload.get("route") or []
        raw_ingredients = payload.get("active_ingredients") or []
        if not isinstance(routes, list):
            raise TypeError(f"route must be a list, got {type(routes).__name__}")
        if not isinstance(raw_ingredients, list):
            raise TypeError(
                f"active_ingredients must be a list, got {type(raw_ingredients).__name__}"
            )

        ingredients = []
        for item in raw_ingredients:
            if not isinstance(item, dict):
                raise TypeError(f"active ingredient must be an object, got {type(item).__name__}")
            if item.get("name"):
                ingredients.append(ActiveIngredient(name=item["name"], strength=item.get("strength")))

        return cls(
            brand_name=payload.get("brand_name") or None,
            generic_name=payload.get("generic_name") or None,
            dosage_form=payload.get("dosage_form") or None,
            routes=tuple(str(route) for route in routes),
            active_ingredients=tuple(ingredients),
            product_ndc=payload.get("product_ndc"),
        )


@dataclass(frozen=True)
class RetailProduct:
    code: str
    title: Optional[str] = None
    brand: Optional[str] = None
    categories: Tuple[str, ...] = ()
    image_url: Optional[str] = None

    @classmethod
    def from_openfoodfacts(cls, code: str, product: Dict[str, Any]) -> "RetailProduct":
        """
        Build from an OpenFoodFacts `product` object.

        Raises:
            TypeError: product is not an object
        """
        if not isinstance(product, dict):
            raise TypeError(f"OpenFoodFacts product must be an object, got {type(product).__name__}")

        brands = product.get("brands") or ""
        if isinstance(brands, str):
            brands = brands.split(",")
        brand = str(brands[0]).strip() if brands else ""

        return cls(
            code=code,
            title=product.get("product_name") or product.get("generic_name") or None,
            brand=brand or None,
            categories=tuple(
                str(tag).replace("en:", "") for tag in product.get("categories_tags") or []
            ),
            image_url=product.get("image_front_small_url") or product.get("image_small_url"),
        )

    @classmethod
    def from_upcitemdb(cls, code: str, item: Dict[str, Any]) -> "RetailProduct":
        """
        Build from one UPCItemDB `items` entry.

        Raises:
            TypeError: item is not an object
        """
        if not isinstance(item, dict):
            raise TypeError(f"UPCItemDB item must be an object, got {type(item).__name__}")

        images: List[str] = item.get("images") or []
        return cls(
            code=code,
            title=item.get("title") or item.get("description") or None,
            brand=item.get("brand") or None,
            categories=(item["category"],) if item.get("category") else (),
            image_url=images[0] if isinstance(images, list) and images else None,
        )
