# ==============================================================================
# WSGI Entry Point - Para Gunicorn en producción
# ==============================================================================
# USO:
#   gunicorn wsgi:app --bind 0.0.0.0:$PORT
#
# Variables habituales en el servidor:
#   GASTRO_SECRET_KEY, GASTRO_DATA_DIR, GASTRO_DATABASE_URL, GASTRO_SYNC_MODE
# ==============================================================================

from gastro_soc.main import create_app

app = create_app()

if __name__ == '__main__':
    app.run(debug=True, host='0.0.0.0', port=5000)
