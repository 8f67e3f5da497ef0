#!/usr/bin/env python
"""
Natours entry point.
Run this file to start the development server; gunicorn imports `app` from it.
"""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from app import create_app  # noqa: E402

app = create_app(os.environ.get('FLASK_ENV', 'development'))

if __name__ == '__main__':
    host = os.environ.get('FLASK_HOST', '0.0.0.0')
    port = int(os.environ.get('PORT', 3000))
    debug = os.environ.get('FLASK_DEBUG', 'false').lower() == 'true'

    app.logger.info(f"Natours running on http://{host}:{port} "
                    f"({os.environ.get('FLASK_ENV', 'development')})")
    app.run(host=host, port=port, debug=debug)
