import argparse

import pytest

from lambdaeip.config import env_default, env_optional, positive_int


def test_env_default_uses_environment():
    assert env_default("TEMPLATE_PATH", environment={"LAMBDAEIP_TEMPLATE_PATH": "out"}) == {
        "required": False,
        "default": "out",
    }


def test_env_default_requires_missing_value():
    assert env_default("TEMPLATE_PATH", environment={}) == {"required": True}


def test_env_optional():
    assert env_optional("SUBNET_COUNT", 2, environment={}) == {"default": 2}
    assert env_optional("SUBNET_COUNT", 2, environment={"LAMBDAEIP_SUBNET_COUNT": "3"}) == {
        "default": "3"
    }


def test_positive_int():
    assert positive_int("3") == 3
    with pytest.raises(argparse.ArgumentTypeError):
        positive_int("0")
    with pytest.raises(argparse.ArgumentTypeError):
        positive_int("two")
