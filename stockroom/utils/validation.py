import re
import unicodedata


def strip_accents(text: str) -> str:
    return "".join(
        c for c in unicodedata.normalize("NFD", text) if unicodedata.category(c) != "Mn"
    )  # Elimina tildes


def normalize_name(name: str) -> str:
    """Normaliza el nombre de un departamento:
    - Elimina espacios extra
    - Capitaliza la primera letra
    """
    name = " ".join(name.split())
    return name[:1].upper() + name[1:]


def slugify(name: str) -> str:
    """Genera el id de un departamento a partir de su nombre: 'Pâtisserie' -> 'patisserie'."""
    slug = strip_accents(name).lower().strip()
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    return slug.strip("-")


'''
unicodedata.normalize('NFD', texto)

NFD significa "Normalización de Forma de Descomposición".
Separa los caracteres acentuados en dos partes:
- Carácter base (Ej: "e")
- Carácter de tilde (Ej: "´")

unicodedata.category(c) devuelve la categoría Unicode del carácter.
"Mn" significa "Mark, Nonspacing" (tildes, diéresis, etc.), así que
filtrarla deja el texto sin tildes.
'''
