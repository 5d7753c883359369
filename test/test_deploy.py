import asyncio
import io
import zipfile

import pytest

from conftest import STATUS_COMPONENT_FAILURE
from sfbridge.errors import RemoteFault, TransportFailure
from sfbridge.services.deploy import DeployOrchestrator, DeployState
from sfbridge.services.soap import DeployJob, parse_deploy_status
from sfbridge.services.translation import TranslationPayload

NOT_DONE = DeployJob(id="0Af1", done=False, status="InProgress")
SUCCEEDED = DeployJob(id="0Af1", done=True, success=True, status="Succeeded")


class ScriptedApi:
    """Replays ``statuses`` one per poll, repeating the last one."""

    def __init__(self, statuses=(), submit_error=None):
        self.statuses = list(statuses)
        self.submit_error = submit_error
        self.events = []
        self.archives = []

    @property
    def polls(self):
        return self.events.count("poll")

    async def deploy(self, archive):
        self.events.append("submit")
        if self.submit_error:
            raise self.submit_error
        self.archives.append(archive)
        return "0Af1"

    async def check_deploy_status(self, job_id):
        self.events.append("poll")
        item = self.statuses[min(self.polls, len(self.statuses)) - 1]
        if isinstance(item, Exception):
            raise item
        return item


class Sleeps(list):
    async def __call__(self, seconds):
        self.append(seconds)


PAYLOAD = TranslationPayload.build("Account", "Industry", "fr", "Secteur",
                                   [{"masterLabel": "Banking", "translation": "Banque"}])


def run(api, **kwargs):
    sleeps = Sleeps()
    orchestrator = DeployOrchestrator(api, sleep=sleeps, **kwargs)
    outcome = asyncio.run(orchestrator.run(PAYLOAD))
    return orchestrator, outcome, sleeps


def test_success_after_three_polls():
    api = ScriptedApi([NOT_DONE, NOT_DONE, SUCCEEDED])
    orchestrator, outcome, sleeps = run(api)

    assert outcome.success
    assert outcome.state is DeployState.SUCCEEDED
    assert outcome.attempts == 3
    assert api.events == ["submit", "poll", "poll", "poll"]
    assert sleeps == [2.0, 2.0, 2.0]
    assert orchestrator.history == [DeployState.BUILDING, DeployState.SUBMITTED,
                                    DeployState.POLLING, DeployState.SUCCEEDED]
    assert outcome.to_dict() == {"success": True, "job_id": "0Af1"}


def test_times_out_after_thirty_polls():
    api = ScriptedApi([NOT_DONE])
    _, outcome, sleeps = run(api)

    assert outcome.state is DeployState.TIMED_OUT
    assert outcome.error == "Deploy timed out"
    assert api.polls == 30
    assert len(sleeps) == 30
    assert outcome.to_dict() == {"success": False, "error": "Deploy timed out", "kind": "Timeout", "job_id": "0Af1"}


def test_attempt_budget_and_interval_are_configurable():
    api = ScriptedApi([NOT_DONE])
    _, outcome, sleeps = run(api, max_attempts=3, interval=0.5)
    assert outcome.state is DeployState.TIMED_OUT
    assert api.polls == 3
    assert sleeps == [0.5, 0.5, 0.5]


def test_component_problem_reported_when_no_error_message():
    api = ScriptedApi([NOT_DONE, parse_deploy_status(STATUS_COMPONENT_FAILURE)])
    _, outcome, _ = run(api)

    assert outcome.state is DeployState.FAILED
    assert outcome.error == "Account-fr: In field: name - no CustomField named Account.Foo__c found"
    assert outcome.error_kind == "ComponentFailure"
    assert outcome.to_dict()["success"] is False


def test_failed_without_any_message():
    api = ScriptedApi([DeployJob(id="0Af1", done=True, success=False, status="Failed")])
    _, outcome, _ = run(api)
    assert outcome.error == "Deploy failed"
    assert outcome.error_kind == "Error"


def test_submit_failure_skips_polling():
    api = ScriptedApi(submit_error=RemoteFault("INVALID_SESSION_ID: Invalid Session ID"))
    orchestrator, outcome, sleeps = run(api)

    assert outcome.state is DeployState.FAILED
    assert outcome.error.startswith("INVALID_SESSION_ID")
    assert outcome.error_kind == "RemoteFault"
    assert api.events == ["submit"]
    assert sleeps == []
    assert DeployState.SUBMITTED not in orchestrator.history


def test_poll_error_is_not_retried():
    api = ScriptedApi([NOT_DONE, TransportFailure("SOAP 503", status_code=503), SUCCEEDED])
    _, outcome, _ = run(api)
    assert outcome.state is DeployState.FAILED
    assert outcome.error == "SOAP 503"
    assert api.polls == 2


def test_submitted_archive_holds_translation_package():
    api = ScriptedApi([SUCCEEDED])
    run(api)
    with zipfile.ZipFile(io.BytesIO(api.archives[0])) as zf:
        assert zf.namelist() == [
            "objectTranslations/",
            "objectTranslations/Account-fr.objectTranslation",
            "package.xml",
        ]


def test_orchestrator_is_single_use():
    api = ScriptedApi([SUCCEEDED])
    orchestrator = DeployOrchestrator(api, sleep=Sleeps())
    asyncio.run(orchestrator.run(PAYLOAD))
    with pytest.raises(RuntimeError):
        asyncio.run(orchestrator.run(PAYLOAD))


STATUS_ERROR_MESSAGE = """<soapenv:Envelope xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/" xmlns="http://soap.sforce.com/2006/04/metadata">
<soapenv:Body><checkDeployStatusResponse><result><done>true</done>
<errorMessage>Deployment exceeded the maximum file size</errorMessage><id>0Af1</id>
<status>Failed</status><success>false</success></result></checkDeployStatusResponse></soapenv:Body></soapenv:Envelope>"""

STATUS_FAULT_DONE = """<soapenv:Envelope xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/">
<soapenv:Body><result><done>true</done><success>false</success></result>
<soapenv:Fault><faultcode>sf:UNKNOWN_EXCEPTION</faultcode><faultstring>UNKNOWN_EXCEPTION: boom</faultstring></soapenv:Fault>
</soapenv:Body></soapenv:Envelope>"""


@pytest.mark.parametrize("status, error, kind", [
    (STATUS_ERROR_MESSAGE, "Deployment exceeded the maximum file size", "RemoteFault"),
    (STATUS_FAULT_DONE, "UNKNOWN_EXCEPTION: boom", "RemoteFault"),
    (STATUS_COMPONENT_FAILURE, "Account-fr: In field: name - no CustomField named Account.Foo__c found",
     "ComponentFailure"),
])
def test_failure_kind_follows_error_source(status, error, kind):
    api = ScriptedApi([parse_deploy_status(status)])
    _, outcome, _ = run(api)
    assert outcome.to_dict() == {"success": False, "error": error, "kind": kind, "job_id": "0Af1"}
