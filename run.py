# run.py
import os
from dotenv import load_dotenv

# Load environment variables from .env file for local development.
# This should be the first thing to run.
load_dotenv()

from zera_oracle.factory import create_app

app = create_app()

# For production, run under a WSGI server (see wsgi.py).
if __name__ == '__main__':
    port = int(os.environ.get('PORT', 8080))
    debug_mode = app.config.get("DEBUG", False)

    # Threaded so that open SSE streams don't block API requests.
    app.run(host='0.0.0.0', port=port, debug=debug_mode, threaded=True, use_reloader=False)
