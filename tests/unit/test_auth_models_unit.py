from portal.auth.models import AuthResult, build_user_dict, determine_role, make_auth_result
from portal.errors import AuthError

def test_determine_role():
    assert determine_role("A") == "admin"
    assert determine_role("admin") == "admin"
    assert determine_role("U") == "user"
    assert determine_role(None) == "user"

def test_build_user_dict_normalises_upstream_user():
    user = build_user_dict({"id": 12, "name": "Jane Mary Doe", "emailId": "jane@example.com", "userType": "A", "countryCode": "DOHA"})
    assert user == {
        "id": "12",
        "username": "Jane Mary Doe",
        "email": "jane@example.com",
        "first_name": "Jane",
        "last_name": "Mary Doe",
        "role": "admin",
        "country_code": "DOHA",
    }

def test_build_user_dict_fallbacks():
    user = build_user_dict({}, fallback_email="x@example.com")
    assert user["id"] is None
    assert user["username"] == "User"
    assert user["email"] == "x@example.com"

def test_make_auth_result_requires_token():
    res = make_auth_result({"success": True, "data": {}}, "x@example.com")
    assert res.success is False
    assert res.error_kind == AuthError.INVALID_CREDENTIALS

def test_to_error_keeps_kind():
    err = AuthResult(False, error="down", error_kind=AuthError.NETWORK).to_error()
    assert isinstance(err, AuthError)
    assert err.status_code == 503
    assert err.recovery == "retry"
    assert err.to_dict() == {"detail": "down", "code": "auth_network", "recovery": "retry"}

def test_make_auth_result_rejects_non_object_user():
    res = make_auth_result({"success": True, "data": {"token": "T", "user": "jane"}}, "x@example.com")
    assert res.success is False
    assert res.error_kind == AuthError.NETWORK
