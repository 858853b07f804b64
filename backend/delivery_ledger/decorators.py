# Overview: Route decorators mapping domain errors to JSON responses.

from functools import wraps
from flask import jsonify, current_app

from .validation import NotFoundError, ValidationError
from .services.bulk_update_service import BatchBlockedError
from .services.concurrency import StorageError
from .services.month_lock import MonthLockedError


def handle_domain_errors(f):
    """
    Translate service exceptions into JSON error bodies.

    - ValidationError  -> 400
    - NotFoundError    -> 404
    - MonthLockedError -> 409 (with customer_id/year/month)
    - BatchBlockedError -> 409 (with blocked[])
    - StorageError     -> 503
    Anything else is logged and returned as 500.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except MonthLockedError as e:
            return jsonify({"error": str(e), **e.to_dict()}), 409
        except BatchBlockedError as e:
            return jsonify({"error": str(e), "blocked": e.blocked}), 409
        except ValidationError as e:
            return jsonify({"error": str(e)}), 400
        except NotFoundError as e:
            return jsonify({"error": str(e)}), 404
        except StorageError as e:
            current_app.logger.error("Storage failure in %s: %s", f.__name__, e)
            return jsonify({"error": "Storage temporarily unavailable"}), 503
        except Exception:
            current_app.logger.exception("Failed to handle %s", f.__name__)
            return jsonify({"error": "Internal server error"}), 500

    return decorated_function
