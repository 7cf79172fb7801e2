"""Routes for the supported currency list and code validation."""

from __future__ import annotations

from flask.views import MethodView

from dailyfx.schemas import (
    CurrencySchema,
    CurrencyValidationRequestSchema,
    CurrencyValidationResponseSchema,
)
from dailyfx.utils.currencies import registry
from dailyfx.validation import validate_currency_code

from . import blp


@blp.route("")
class CurrencyList(MethodView):
    @blp.response(200, CurrencySchema(many=True))
    def get(self):
        return list(registry)


@blp.route("/validate")
class CurrencyValidation(MethodView):
    @blp.arguments(CurrencyValidationRequestSchema)
    @blp.response(200, CurrencyValidationResponseSchema())
    def post(self, data):
        validated = validate_currency_code(data.get("code"), field="code")
        return {
            "code": validated,
            "message": "Currency code is supported.",
        }
