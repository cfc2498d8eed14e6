import argparse
import os

ENV_PREFIX = __package__.upper()


def env_default(name, *, prefix=ENV_PREFIX, environment=os.environ):
    env_key = f"{prefix}_{name}"
    if env_key in environment:
        return {"required": False, "default": environment[env_key]}
    return {"required": True}


def env_optional(name, default=None, *, prefix=ENV_PREFIX, environment=os.environ):
    return {"default": environment.get(f"{prefix}_{name}", default)}


def positive_int(value):
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value!r} is not an integer")
    if number < 1:
        raise argparse.ArgumentTypeError(f"{value!r} must be at least 1")
    return number
