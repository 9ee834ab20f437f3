from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_cors import CORS

# --- Flask Extensions ---
db = SQLAlchemy()
migrate = Migrate()
cors = CORS()
