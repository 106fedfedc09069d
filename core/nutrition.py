# /core/nutrition.py

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class FatContent(BaseModel):
    total: float
    saturated: Optional[float] = None


class NutritionalInfo(BaseModel):
    name: str
    serving_size: str
    calories: int
    protein: Optional[float] = None
    carbohydrates: Optional[float] = None
    sugars: Optional[float] = None
    fat: Optional[FatContent] = None
    description: Optional[str] = None
    variants: List["NutritionalInfo"] = Field(default_factory=list)


def _info(name, serving_size, calories, protein=None, carbohydrates=None, sugars=None, fat=None, saturated=None, description=None, variants=None):
    return NutritionalInfo(
        name=name,
        serving_size=serving_size,
        calories=calories,
        protein=protein,
        carbohydrates=carbohydrates,
        sugars=sugars,
        fat=FatContent(total=fat, saturated=saturated) if fat is not None else None,
        description=description,
        variants=variants or [],
    )


# Product nutrition facts keyed by normalized product family name
NUTRITIONAL_DATABASE: Dict[str, List[NutritionalInfo]] = {
    "kitkat": [
        _info("KITKAT 4-Finger Wafer Bar, Milk Chocolate", "45g", 230, 3, 27, 21, 12, 7.5,
              "Four crisp wafer fingers covered in smooth milk chocolate"),
        _info("KITKAT Valentine's Mini Chocolate Wafer Bars Pack of 30", "36g (3 bars)", 180, 2.4, 21.6, 16.8, 9.6, 6,
              "Mini KitKat bars perfect for sharing on Valentine's Day"),
        _info("KITKAT Christmas Holiday Advent Calendar", "varies", 0,
              description="Holiday advent calendar with various KitKat treats",
              variants=[
                  _info("Kit Kat Characters", "8.2g (1 piece)", 45),
                  _info("KitKat Bubbles", "7g (1 piece)", 40),
                  _info("KitKat Santa", "29g (1 piece)", 160),
                  _info("KitKat mini bar", "12g (1 piece)", 60),
              ]),
        _info("KITKAT Chunky Extreme Choc Wafer Bar", "48g", 250, 3.5, 26, 22, 14, 8.5,
              "Extra thick KitKat with more chocolate"),
    ],
    "aero": [
        _info("AERO Milk Chocolate Bar", "40g", 220, 2.5, 24, 23, 12, 7.5,
              "Smooth milk chocolate with unique bubbly texture"),
        _info("AERO Truffle Salted Caramel", "36g", 190, 2, 22, 20, 11, 7,
              "Bubbly chocolate with salted caramel truffle center"),
        _info("AERO Scoops Vanilla Bean", "100ml", 135, 2, 18, 15, 6, 4,
              "Vanilla ice cream with AERO bubbles"),
        _info("AERO Scoops Double Chocolate", "100ml", 145, 2.5, 19, 16, 7, 4.5,
              "Chocolate ice cream with AERO bubbles"),
    ],
    "coffee crisp": [
        _info("COFFEE CRISP Chocolate Bar", "50g", 260, 3, 34, 26, 12, 7,
              "Light crispy wafers with coffee-flavoured cream covered in milk chocolate"),
        _info("COFFEE CRISP Chocolate Bar, Single", "50g", 260, 3, 34, 26, 12, 7,
              "Light crispy wafers with coffee-flavoured cream covered in milk chocolate"),
    ],
    "smarties": [
        _info("SMARTIES Regular Box", "45g", 220, 2.5, 32, 30, 10, 6,
              "Colourful candy-coated milk chocolate"),
        _info("SMARTIES Mini Box", "15g", 73, 0.8, 10.6, 10, 3.3, 2,
              "Colourful candy-coated milk chocolate in mini size"),
    ],
    "quality street": [
        _info("QUALITY STREET Holiday Gift Tin", "4 pieces (32g)", 150, 1.5, 22, 20, 6.5, 4,
              "Assorted chocolates and toffees in a gift tin"),
        _info("QUALITY STREET Holiday Gift Box", "4 pieces (32g)", 150, 1.5, 22, 20, 6.5, 4,
              "Assorted chocolates and toffees in a gift box"),
    ],
    "turtles": [
        _info("TURTLES Classic Recipe Holiday Gift Box", "3 pieces (42g)", 220, 3, 19, 18, 15, 7,
              "Pecan halves and smooth caramel covered in milk chocolate"),
    ],
    "after eight": [
        _info("AFTER EIGHT Thin Mints", "2 pieces (16g)", 75, 0.5, 12, 11, 2.5, 1.5,
              "Thin dark chocolate squares with mint fondant filling"),
    ],
    "crunch": [
        _info("CRUNCH Chocolate Bar", "44g", 220, 3, 26, 21, 12, 7,
              "Milk chocolate with crisped rice"),
    ],
    "drumstick": [
        _info("DRUMSTICK Classic Vanilla", "1 cone (140ml)", 290, 4, 32, 22, 16, 11,
              "Vanilla ice cream in a sugar cone with chocolate and peanuts"),
        _info("DRUMSTICK Vanilla Chocolate Swirl", "1 cone (140ml)", 300, 4, 34, 24, 16, 11,
              "Vanilla and chocolate swirl ice cream in a sugar cone with chocolate and peanuts"),
    ],
}


def normalize_product_name(product_name: str) -> str:
    return product_name.lower().replace("nestlé", "").replace("nestle", "").strip()


def get_nutritional_info(product_name: str) -> Optional[List[NutritionalInfo]]:
    """
    Looks up nutrition facts for a product family. Tries an exact match on the
    normalized name first, then a containment match in either direction.
    """
    normalized = normalize_product_name(product_name)
    if not normalized:
        return None

    if normalized in NUTRITIONAL_DATABASE:
        return NUTRITIONAL_DATABASE[normalized]

    for key, entries in NUTRITIONAL_DATABASE.items():
        if key in normalized or normalized in key:
            return entries

    return None
