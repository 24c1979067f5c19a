"""shared fixtures: sample contracts and a scripted generation backend"""

import asyncio
import json

import pytest

from quorum.agent.prompts import SYSTEM_PROMPTS
from quorum.utils.audit_log import InMemoryAuditLog
from quorum.utils.caching import NullCache
from quorum.utils.llm_backend import LLMBackend, LLMResponse


BENIGN_CONTRACT = """// SPDX-License-Identifier: MIT
pragma solidity ^0.8.20;

contract Greeter {
    string private greeting;
    address public owner;

    event GreetingChanged(string newGreeting);

    constructor(string memory initial) {
        greeting = initial;
        owner = msg.sender;
    }

    function greet() external view returns (string memory) {
        return greeting;
    }
}
"""

# line 13 holds the value-bearing call, the balance write follows on line 15
REENTRANT_CONTRACT = """// SPDX-License-Identifier: MIT
pragma solidity ^0.8.20;

contract EtherStore {
    mapping(address => uint256) public balances;

    function deposit() external payable {
        balances[msg.sender] += msg.value;
    }

    function withdraw(uint256 amount) external {
        require(balances[msg.sender] >= amount, "insufficient");
        (bool ok, ) = msg.sender.call{value: amount}("");
        require(ok, "failed");
        balances[msg.sender] -= amount;
    }
}
"""

CLEAN_RESPONSE = json.dumps({
    "overallScore": 90,
    "riskLevel": "Low",
    "summary": "No issues found",
    "vulnerabilities": [],
    "recommendations": ["Add NatSpec comments"],
})


def agent_for_system_prompt(system_prompt):
    for agent, text in SYSTEM_PROMPTS.items():
        if text == system_prompt:
            return agent
    return None


class ScriptedBackend(LLMBackend):
    """
    answers by reviewer role: a str is returned as the response text, an
    exception instance is raised, a float is slept before the default answer
    """

    def __init__(self, responses=None, default=CLEAN_RESPONSE):
        super().__init__(model="scripted")
        self.responses = responses or {}
        self.default = default
        self.calls = []

    async def generate(self, prompt, system_prompt=None, max_tokens=4000, temperature=0.2, **kwargs):
        agent = agent_for_system_prompt(system_prompt)
        self.calls.append(agent)
        scripted = self.responses.get(agent, self.default)
        if isinstance(scripted, BaseException):
            raise scripted
        if isinstance(scripted, float):
            await asyncio.sleep(scripted)
            scripted = self.default
        return LLMResponse(text=scripted, model=self.model)

    def is_available(self):
        return True


class FailingBackend(LLMBackend):
    def __init__(self):
        super().__init__(model="failing")
        self.calls = 0

    async def generate(self, prompt, system_prompt=None, max_tokens=4000, temperature=0.2, **kwargs):
        self.calls += 1
        raise ConnectionError("upstream unavailable")

    def is_available(self):
        return False


@pytest.fixture
def benign_source():
    return BENIGN_CONTRACT


@pytest.fixture
def reentrant_source():
    return REENTRANT_CONTRACT


@pytest.fixture
def scripted_backend():
    return ScriptedBackend()


@pytest.fixture
def make_backend():
    return ScriptedBackend


@pytest.fixture
def failing_backend():
    return FailingBackend()


@pytest.fixture
def audit_log():
    return InMemoryAuditLog()


@pytest.fixture
def null_cache():
    return NullCache()
