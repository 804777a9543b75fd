"""Tests for fm_common.errors and fm_common.response."""

from src.fm_common.errors import (
    AlreadyAppliedError,
    AppError,
    CreditLoanAlreadyReversedError,
    CreditLoanNotFoundError,
    FixtureResultPendingError,
    InsufficientFundsError,
    InsufficientSharesError,
    InvalidFixtureError,
    PriceMismatchError,
    TeamNotFoundError,
    TeamNotTradeableError,
    TransactionConflictError,
)
from src.fm_common.response import (
    ApiResponse,
    app_error_response,
    error_response,
    success_response,
)


class TestAppError:
    def test_base_error(self) -> None:
        err = AppError(code=9002, message="Internal error")
        assert err.code == 9002
        assert err.message == "Internal error"
        assert err.http_status == 500

    def test_custom_http_status(self) -> None:
        err = AppError(code=3001, message="Team not found", http_status=404)
        assert err.http_status == 404

    def test_is_exception(self) -> None:
        err = AppError(code=3001, message="test")
        assert isinstance(err, Exception)


class TestSpecificErrors:
    def test_insufficient_funds(self) -> None:
        err = InsufficientFundsError(required=6500, available=3000)
        assert err.code == 2001
        assert err.http_status == 422
        assert "6500" in err.message
        assert "3000" in err.message

    def test_credit_loan_not_found(self) -> None:
        err = CreditLoanNotFoundError(7)
        assert err.code == 2004
        assert err.http_status == 404

    def test_credit_loan_already_reversed(self) -> None:
        err = CreditLoanAlreadyReversedError(7)
        assert err.code == 2005
        assert err.http_status == 409

    def test_team_not_found(self) -> None:
        err = TeamNotFoundError(7)
        assert err.code == 3001
        assert err.http_status == 404

    def test_team_not_tradeable_reason(self) -> None:
        err = TeamNotTradeableError(7, "buy window closed")
        assert err.code == 3002
        assert "buy window closed" in err.message

    def test_fixture_result_pending(self) -> None:
        err = FixtureResultPendingError(12)
        assert err.code == 3102
        assert err.http_status == 422

    def test_already_applied_is_not_a_failure_status(self) -> None:
        err = AlreadyAppliedError(12)
        assert err.code == 3104
        assert err.http_status == 200

    def test_invalid_fixture(self) -> None:
        err = InvalidFixtureError("home and away team must differ")
        assert err.code == 3105
        assert err.http_status == 422

    def test_price_mismatch(self) -> None:
        err = PriceMismatchError(expected=12, current=10)
        assert err.code == 4001
        assert err.http_status == 409

    def test_insufficient_shares(self) -> None:
        err = InsufficientSharesError(requested=15, available=10)
        assert err.code == 5001
        assert "15" in err.message

    def test_transaction_conflict(self) -> None:
        err = TransactionConflictError()
        assert err.code == 9003
        assert err.http_status == 409


class TestApiResponse:
    def test_success(self) -> None:
        resp = success_response({"id": "abc"})
        assert resp.code == 0
        assert resp.message == "success"
        assert resp.data == {"id": "abc"}

    def test_success_keeps_request_id(self) -> None:
        resp = success_response(None, request_id="req_abc")
        assert resp.request_id == "req_abc"

    def test_error(self) -> None:
        resp = error_response(2001, "Insufficient funds")
        assert resp.code == 2001
        assert resp.message == "Insufficient funds"
        assert resp.data is None

    def test_from_app_error(self) -> None:
        resp = app_error_response(TeamNotFoundError(3))
        assert isinstance(resp, ApiResponse)
        assert resp.code == 3001
        assert "3" in resp.message

    def test_serialization(self) -> None:
        resp = success_response({"price": 65})
        d = resp.model_dump()
        assert "code" in d
        assert "message" in d
        assert "data" in d
        assert "timestamp" in d
        assert "request_id" in d
