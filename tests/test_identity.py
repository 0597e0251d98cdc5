import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from errors import AccountExists, Unauthenticated
from identity import IdentityProvider, hash_password, verify_password
from schemas import SignInIn, SignUpIn


def make_session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


def sign_up(provider: IdentityProvider, email: str = "Ana@Example.com") -> str:
    account = provider.sign_up(
        SignUpIn(email=email, password="correct horse", fullName="Ana Nguyen")
    )
    return account.id


def test_password_hash_accepts_only_its_own_password() -> None:
    hashed = hash_password("s3cret-pass")
    assert hashed != "s3cret-pass"
    assert verify_password("s3cret-pass", hashed)
    assert not verify_password("s3cret-pasS", hashed)
    assert not verify_password("s3cret-pass", "not-a-bcrypt-hash")


def test_sign_up_then_sign_in_resolves_the_same_user() -> None:
    with make_session() as session:
        provider = IdentityProvider(session)
        user_id = sign_up(provider)

        token = provider.sign_in(SignInIn(email="ana@example.com", password="correct horse"))

        assert provider.get_current_user(token) == user_id
        account = provider.get_account(user_id)
        assert account.email == "ana@example.com"
        assert account.profile.full_name == "Ana Nguyen"


def test_duplicate_email_is_rejected_case_insensitively() -> None:
    with make_session() as session:
        provider = IdentityProvider(session)
        sign_up(provider)
        with pytest.raises(AccountExists):
            sign_up(provider, email="ANA@example.com")


def test_wrong_password_and_unknown_email_fail_the_same_way() -> None:
    with make_session() as session:
        provider = IdentityProvider(session)
        sign_up(provider)

        with pytest.raises(Unauthenticated, match="Invalid email or password"):
            provider.sign_in(SignInIn(email="ana@example.com", password="wrong horse"))
        with pytest.raises(Unauthenticated, match="Invalid email or password"):
            provider.sign_in(SignInIn(email="bo@example.com", password="correct horse"))


@pytest.mark.parametrize("token", [None, "", "garbage", "eyJzaWQiOiJ4In0.abc.def"])
def test_missing_or_forged_tokens_are_unauthenticated(token) -> None:
    with make_session() as session:
        with pytest.raises(Unauthenticated):
            IdentityProvider(session).get_current_user(token)


def test_tampered_token_is_rejected() -> None:
    with make_session() as session:
        provider = IdentityProvider(session)
        sign_up(provider)
        token = provider.sign_in(SignInIn(email="ana@example.com", password="correct horse"))

        tampered = token[:-4] + ("AAAA" if not token.endswith("AAAA") else "BBBB")
        with pytest.raises(Unauthenticated):
            provider.get_current_user(tampered)


def test_signed_out_token_stops_working() -> None:
    with make_session() as session:
        provider = IdentityProvider(session)
        sign_up(provider)
        token = provider.sign_in(SignInIn(email="ana@example.com", password="correct horse"))

        provider.sign_out(token)

        with pytest.raises(Unauthenticated):
            provider.get_current_user(token)
        # Signing out twice is harmless.
        provider.sign_out(token)


def test_refresh_issues_a_token_for_the_same_session() -> None:
    with make_session() as session:
        provider = IdentityProvider(session)
        user_id = sign_up(provider)
        token = provider.sign_in(SignInIn(email="ana@example.com", password="correct horse"))

        refreshed = provider.refresh(token)

        assert provider.get_current_user(refreshed) == user_id
        provider.sign_out(refreshed)
        with pytest.raises(Unauthenticated):
            provider.get_current_user(token)


def test_each_sign_in_gets_its_own_session() -> None:
    with make_session() as session:
        provider = IdentityProvider(session)
        sign_up(provider)
        credentials = SignInIn(email="ana@example.com", password="correct horse")
        laptop = provider.sign_in(credentials)
        phone = provider.sign_in(credentials)

        provider.sign_out(laptop)

        with pytest.raises(Unauthenticated):
            provider.get_current_user(laptop)
        assert provider.get_current_user(phone)
