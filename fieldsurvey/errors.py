from flask import jsonify


class FieldSurveyError(Exception):
    """Base error. `message` is safe to show to the end user."""

    code = 'error'
    status = 400

    def __init__(self, message: str = '', code: str = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_dict(self) -> dict:
        return {'error': self.code, 'message': self.message}


class ValidationError(FieldSurveyError):
    code = 'validation_error'
    status = 400


class NotFoundError(FieldSurveyError):
    code = 'not_found'
    status = 404


class StaleCampaignError(FieldSurveyError):
    code = 'stale_campaign'
    status = 409


class VoucherExhaustedError(FieldSurveyError):
    code = 'voucher_exhausted'
    status = 409


class StorageError(FieldSurveyError):
    """A database call failed. The message names the operation in general terms."""

    code = 'storage_error'
    status = 500


def register_error_handlers(app):
    @app.errorhandler(FieldSurveyError)
    def _domain_error(e):
        return jsonify(e.to_dict()), e.status

    @app.errorhandler(401)
    def _401(e):
        return jsonify({'error': 'unauthorized', 'message': 'Autenticação necessária.'}), 401

    @app.errorhandler(403)
    def _403(e):
        return jsonify({'error': 'forbidden', 'message': 'Acesso negado.'}), 403

    @app.errorhandler(404)
    def _404(e):
        return jsonify({'error': 'not_found', 'message': 'Recurso não encontrado.'}), 404

    @app.errorhandler(405)
    def _405(e):
        return jsonify({'error': 'method_not_allowed'}), 405
