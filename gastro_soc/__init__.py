# ==============================================================================
# GASTRO SOC - Núcleo de gestión del club gastronómico
# ==============================================================================
# Economato, eventos con consumos, tesorería, socias y permisos por rol.
# Arranque: gunicorn wsgi:app  |  python -m gastro_soc.main
# ==============================================================================

__version__ = '1.2.0'
