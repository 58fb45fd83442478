"""Error handlers for the application. Every response is JSON."""
from flask import jsonify
from werkzeug.exceptions import HTTPException

from idp.core.exceptions import NotFoundError, UnknownAttribute, ValidationFailed


def register_error_handlers(app):
    """Register error handlers with the Flask app."""

    @app.errorhandler(NotFoundError)
    def handle_not_found_error(error):
        return jsonify({"error": "Not Found", "message": str(error)}), 404

    @app.errorhandler(ValidationFailed)
    def handle_validation_failed(error):
        return jsonify(error.to_dict()), 400

    @app.errorhandler(UnknownAttribute)
    def handle_unknown_attribute(error):
        app.logger.warning("Rejected write of unknown attribute '%s'", error.name)
        return jsonify({"error": "Bad Request", "message": str(error)}), 400

    @app.errorhandler(400)
    def bad_request(error):
        return jsonify({"error": "Bad Request", "message": error.description}), 400

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Not Found", "message": "Resource not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"error": "Method Not Allowed", "message": error.description}), 405

    @app.errorhandler(Exception)
    def handle_exception(error):
        """Handle uncaught exceptions."""
        if isinstance(error, HTTPException):
            return jsonify({"error": error.name, "message": error.description}), error.code

        # Store errors and programming errors end here; always log them
        app.logger.error(f"Unhandled exception: {error}", exc_info=True)

        message = str(error) if app.debug or app.config.get("TESTING") else "An unexpected error occurred"
        return jsonify({"error": "Internal Server Error", "message": message}), 500
