"""
Vehicle Catalogue
Known makes, their synonyms and the models each make builds
"""
from typing import Dict, List, Optional


KNOWN_MAKES = [
    "Alfa Romeo",
    "Audi",
    "BMW",
    "Citroen",
    "Dacia",
    "Fiat",
    "Ford",
    "Honda",
    "Hyundai",
    "Jaguar",
    "Jeep",
    "Kia",
    "Land Rover",
    "Lexus",
    "Mazda",
    "Mercedes-Benz",
    "Mitsubishi",
    "Nissan",
    "Peugeot",
    "Porsche",
    "Renault",
    "Skoda",
    "Subaru",
    "Suzuki",
    "Tesla",
    "Toyota",
    "Vauxhall",
    "Volkswagen",
    "Volvo",
]

MAKE_SYNONYMS = {
    "beamer": "BMW",
    "bimmer": "BMW",
    "merc": "Mercedes-Benz",
    "mercedes": "Mercedes-Benz",
    "benz": "Mercedes-Benz",
    "vw": "Volkswagen",
    "alfa": "Alfa Romeo",
    "range rover": "Land Rover",
}

MODELS_BY_MAKE: Dict[str, List[str]] = {
    "Audi": ["A1", "A3", "A4", "A6", "Q2", "Q3", "Q5", "TT"],
    "BMW": ["1 Series", "2 Series", "3 Series", "5 Series", "X1", "X3", "X5", "i3"],
    "Ford": ["Fiesta", "Focus", "Kuga", "Puma", "Mondeo", "Mustang"],
    "Honda": ["Civic", "Jazz", "CR-V", "HR-V"],
    "Hyundai": ["i10", "i20", "i30", "Tucson", "Kona", "Ioniq"],
    "Kia": ["Picanto", "Rio", "Ceed", "Sportage", "Niro"],
    "Mercedes-Benz": ["A-Class", "C-Class", "E-Class", "GLA", "GLC"],
    "Nissan": ["Micra", "Juke", "Qashqai", "Leaf", "X-Trail"],
    "Tesla": ["Model 3", "Model Y", "Model S"],
    "Toyota": ["Aygo", "Yaris", "Corolla", "C-HR", "RAV4", "Prius"],
    "Vauxhall": ["Corsa", "Astra", "Mokka", "Insignia"],
    "Volkswagen": ["Polo", "Golf", "Passat", "Tiguan", "T-Roc", "ID.3"],
    "Volvo": ["XC40", "XC60", "XC90", "V60"],
}

MAKE_BY_MODEL: Dict[str, str] = {
    model.lower(): make
    for make, models in MODELS_BY_MAKE.items()
    for model in models
}


def make_for_model(model: str) -> Optional[str]:
    """The make that builds a model, or None for models not in the catalogue"""
    if not isinstance(model, str):
        return None
    return MAKE_BY_MODEL.get(model.strip().lower())
