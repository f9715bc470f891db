import os
import logging
from rich.logging import RichHandler
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
import matplotlib
matplotlib.use("Agg")

from evaluation.errors import EvaluationError
from evaluation.models import init_db
from routes.auth import auth_bp
from routes.admin_routes import admin_bp
from routes.hod_routes import hod_bp
from routes.student_routes import student_bp

from config import (
    LOG_LEVEL,
    MAX_FILE_SIZE,
    SECRET_KEY,
    UPLOAD_FOLDER,
)
from asgiref.wsgi import WsgiToAsgi

# Configure rich logging
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(message)s",
)

logging.root.handlers = [
    RichHandler(rich_tracebacks=True, show_path=True, tracebacks_show_locals=False,
                log_time_format="[%b %d, %Y, %I:%M:%S %p]",
                )
]
logger = logging.getLogger("faculty_evaluation")

app = Flask(__name__)
app.secret_key = SECRET_KEY
app.config['MAX_CONTENT_LENGTH'] = MAX_FILE_SIZE

# Register blueprints
app.register_blueprint(auth_bp)
app.register_blueprint(admin_bp)
app.register_blueprint(student_bp)
app.register_blueprint(hod_bp)

# Ensure upload folder exists
os.makedirs(UPLOAD_FOLDER, exist_ok=True)

asgi_app = WsgiToAsgi(app)


@app.errorhandler(EvaluationError)
def handle_evaluation_error(error):
    return jsonify(error.to_dict()), error.status_code


@app.errorhandler(Exception)
def handle_unexpected_error(error):
    if isinstance(error, HTTPException):
        return jsonify({'success': False, 'message': error.description}), error.code
    logger.exception(f"Unhandled error: {error}")
    return jsonify({'success': False, 'message': 'Internal server error'}), 500


@app.route("/health")
def health():
    return jsonify({'success': True, 'status': 'ok'})


if __name__ == "__main__":
    # Initialize database
    logger.info("Initializing database...")
    init_db()
    logger.info("Database initialized")

    import uvicorn
    host = os.environ.get('FEEDBACK_HOST', '0.0.0.0')
    port = int(os.environ.get('FEEDBACK_PORT', '8000'))
    logger.info(f"Starting server on {host}:{port}")
    uvicorn.run(asgi_app, host=host, port=port, log_config=None)
