from datetime import datetime, timedelta, timezone

from yogaflow.engine.otp import OTP_TTL, codes_match, expires_at, generate_code, is_expired

NOW = datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc)


class TestGenerateCode:
    def test_six_digits(self):
        for _ in range(200):
            code = generate_code()
            assert len(code) == 6
            assert code.isdigit()
            assert 100000 <= int(code) <= 999999


class TestExpiry:
    def test_ttl_is_ten_minutes(self):
        assert OTP_TTL == timedelta(minutes=10)
        assert expires_at(NOW) == NOW + timedelta(minutes=10)

    def test_not_expired_at_deadline(self):
        entry = {"code": "123456", "expires_at": expires_at(NOW)}
        assert not is_expired(entry, NOW + timedelta(minutes=10))

    def test_expired_after_deadline(self):
        entry = {"code": "123456", "expires_at": expires_at(NOW)}
        assert is_expired(entry, NOW + timedelta(minutes=10, seconds=1))


class TestCodesMatch:
    def test_match(self):
        assert codes_match("123456", "123456")

    def test_mismatch(self):
        assert not codes_match("123456", "654321")
        assert not codes_match("123456", "")
        assert not codes_match("123456", None)
