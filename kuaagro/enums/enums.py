from enum import Enum

# =====================================================
# 🌱 CAMPO
# =====================================================
class LoteEnum(str, Enum):
    lote_1 = "Lote 1"
    lote_2 = "Lote 2"
    lote_3 = "Lote 3"
    lote_4 = "Lote 4"


class ColorCintaEnum(str, Enum):
    blanco = "Blanco"
    azul = "Azul"
    dorado = "Dorado"
    gris = "Gris"
    morado = "Morado"
    cafe_con_negro = "Café con Negro"
    naranja = "Naranja"
    verde = "Verde"
    amarillo = "Amarillo"


# =====================================================
# 📝 FORMULARIO
# =====================================================
class CampoEnum(str, Enum):
    lote = "lote"
    color = "color"
    prematuro = "prematuro"
    presente = "presente"
    novedades = "novedades"
    cosecha = "cosecha"


CAMPOS_SELECCION = (CampoEnum.lote, CampoEnum.color)
CAMPOS_NUMERICOS = (CampoEnum.prematuro, CampoEnum.presente, CampoEnum.novedades, CampoEnum.cosecha)


class VistaEnum(str, Enum):
    formulario = "formulario"  # Nuevo registro
    datos = "datos"            # Listado de registros
