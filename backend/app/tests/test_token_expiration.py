from datetime import datetime
import importlib
import pathlib
import sys

from jose import jwt

# Allow importing the app package
sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))


def test_access_token_expiration_respects_env(monkeypatch):
    monkeypatch.setenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1")
    import app.auth as auth
    importlib.reload(auth)

    token = auth.create_access_token(data={"sub": "server@example.com"})
    decoded = jwt.decode(token, auth.SECRET_KEY, algorithms=[auth.ALGORITHM])
    assert decoded["sub"] == "server@example.com"
    exp = datetime.utcfromtimestamp(decoded["exp"])
    delta = exp - datetime.utcnow()
    assert 45 <= delta.total_seconds() <= 75

    monkeypatch.delenv("ACCESS_TOKEN_EXPIRE_MINUTES", raising=False)
    importlib.reload(auth)
    assert auth.ACCESS_TOKEN_EXPIRE_MINUTES == 30
