# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

import os
import pytest
from magicr import metrics
from magicr.config import get_cfg, reload_cfg
from utils import FakeGit, FakeProvider, make_llm

_KEY_VARS = ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "AZURE_OPENAI_API_KEY",
             "AZURE_OPENAI_ENDPOINT")


@pytest.fixture(autouse=True)
def _reset_cfg_between_tests(monkeypatch, tmp_path):
    for k in list(os.environ):
        if k.startswith("MAGICR_") or k in _KEY_VARS:
            monkeypatch.delenv(k, raising=False)
    # keep project files from the developer's checkout out of the way
    monkeypatch.chdir(tmp_path)
    reload_cfg()
    metrics.reset()
    yield


@pytest.fixture()
def cfg():
    return get_cfg()


@pytest.fixture()
def git():
    return FakeGit()


@pytest.fixture()
def provider():
    return FakeProvider()


@pytest.fixture()
def llm(provider):
    return make_llm(provider)
