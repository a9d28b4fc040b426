# backoffice/services/__init__.py
# One module per back-office domain. Service functions return a success dict
# or an (error_dict, status_code) tuple that the blueprints pass through
# _handle_service_result.
