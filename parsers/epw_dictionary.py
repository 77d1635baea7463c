"""
Static EPW attribute dictionary.

Default code → description tables for the six attribute classes.
Last fallback tier: used when no live or cached attribute list knows a code.
"""

from typing import Optional

from models.epw import AttributeClass

EPW_DICTIONARY: dict[AttributeClass, dict[str, str]] = {
    AttributeClass.TIPO: {
        "C": "Calha",
        "R": "Régua",
        "F": "Fixação",
        "G": "Grelha",
        "O": "Outros",
        "X": "Especial",
        "T": "Tampa",
        "S": "Sistema",
        "P": "Perfil",
        "D": "Drenagem",
        "U": "União",
        "M": "Material",
        "L": "Linear",
        "CS": "Calha Sistema",
        "TT": "Tampa Técnica",
        "GG": "Grelha Grande",
        "ML": "Material Linear",
    },
    AttributeClass.CERTIF: {
        "S": "Sem",
        "P": "Premium",
        "E": "Especial",
        "N": "Normal",
    },
    AttributeClass.MODELO: {
        "C": "LcDeck Classic",
        "X": "XR Model",
        "D": "DR Model",
        "S": "SR Model",
        "T": "TR Model",
        "A": "Avanzado",
        "B": "Basic",
        "M": "Master",
        "P": "Pro",
        "L": "Luxury",
        "R": "Regular",
        "E": "Elite",
        "F": "Flex",
        "G": "Grand",
        "H": "Home",
        "I": "Industrial",
        "J": "Junior",
        "K": "King",
        "N": "Neo",
        "O": "Original",
        "Q": "Quality",
        "U": "Ultra",
        "V": "Value",
        "W": "Wide",
        "Y": "Young",
        "Z": "Zen",
    },
    # Lengths in mm; alphabetic codes are named sizes
    AttributeClass.COMPRIM: {
        "10": "1000mm",
        "12": "1200mm",
        "15": "1500mm",
        "18": "1800mm",
        "20": "2000mm",
        "23": "2300mm",
        "25": "2500mm",
        "30": "3000mm",
        "32": "3200mm",
        "35": "3500mm",
        "40": "4000mm",
        "45": "4500mm",
        "50": "5000mm",
        "60": "6000mm",
        "ML": "Médio Longo",
        "MC": "Médio Curto",
        "XL": "Extra Longo",
        "XS": "Extra Pequeno",
        "SM": "Pequeno",
        "LG": "Grande",
    },
    AttributeClass.COR: {
        "L": "Branco",
        "P": "Preto",
        "I": "Inox",
        "C": "Chocolate",
        "G": "Cinzento",
        "A": "Azul",
        "B": "Bege",
        "D": "Dourado",
        "E": "Esmeralda",
        "F": "Fume",
        "H": "Honey",
        "J": "Jade",
        "K": "Khaki",
        "M": "Marrom",
        "N": "Natural",
        "O": "Ocre",
        "Q": "Quartzo",
        "R": "Rosé",
        "S": "Silver",
        "T": "Titanium",
        "U": "Único",
        "V": "Verde",
        "W": "White",
        "X": "Xadrez",
        "Y": "Yellow",
        "Z": "Zinco",
    },
    AttributeClass.ACABAMENTO: {
        "T": "Texturado",
        "L": "Lixado",
        "B": "Brilhante",
        "M": "Mate",
        "R": "Rugoso",
        "A": "Acetinado",
        "C": "Cristal",
        "D": "Diamante",
        "E": "Espelhado",
        "F": "Fosco",
        "G": "Gloss",
        "H": "Hammered",
        "J": "Jateado",
        "K": "Kraft",
        "N": "Natural",
        "O": "Oxidado",
        "P": "Polido",
        "Q": "Quartzo",
        "S": "Satin",
        "U": "Ultra",
        "V": "Vintage",
        "W": "Wood",
        "X": "Xadrez",
        "Y": "Yeso",
        "Z": "Zen",
    },
}


def lookup(attribute_class: AttributeClass, code: str) -> Optional[str]:
    """Return the default description for a code, or None."""
    return EPW_DICTIONARY[attribute_class].get(code)


def codes(attribute_class: AttributeClass) -> list[str]:
    """Known codes of one attribute class, in dictionary order."""
    return list(EPW_DICTIONARY[attribute_class])
