import pytest

from sfbridge.config import get_settings

DESCRIBE_FR = """<?xml version="1.0" encoding="UTF-8"?>
<soapenv:Envelope xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/" xmlns="urn:partner.soap.sforce.com">
<soapenv:Body><describeSObjectResponse><result>
<activateable>false</activateable>
<fields><aggregatable>true</aggregatable><label>Nom du compte</label><length>255</length><name>Name</name><type>string</type></fields>
<fields><label>Secteur</label><name>Industry</name>
<picklistValues><active>true</active><defaultValue>false</defaultValue><label>Agriculture FR</label><value>Agriculture</value></picklistValues>
<picklistValues><active>false</active><defaultValue>false</defaultValue><label>Ancien</label><value>Legacy</value></picklistValues>
<picklistValues><active>true</active><defaultValue>false</defaultValue><label>Banque &amp; Finance</label><value>Banking</value></picklistValues>
<type>picklist</type></fields>
<label>Compte</label><name>Account</name>
</result></describeSObjectResponse></soapenv:Body></soapenv:Envelope>"""

DEPLOY_SUBMITTED = """<?xml version="1.0" encoding="UTF-8"?>
<soapenv:Envelope xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/" xmlns="http://soap.sforce.com/2006/04/metadata">
<soapenv:Body><deployResponse><result><done>false</done><id>0Af5g00000ABCDE</id><state>Queued</state></result></deployResponse></soapenv:Body>
</soapenv:Envelope>"""

STATUS_IN_PROGRESS = """<soapenv:Envelope xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/" xmlns="http://soap.sforce.com/2006/04/metadata">
<soapenv:Body><checkDeployStatusResponse><result><checkOnly>false</checkOnly><done>false</done><id>0Af5g00000ABCDE</id>
<status>InProgress</status><success>false</success></result></checkDeployStatusResponse></soapenv:Body></soapenv:Envelope>"""

STATUS_SUCCEEDED = """<soapenv:Envelope xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/" xmlns="http://soap.sforce.com/2006/04/metadata">
<soapenv:Body><checkDeployStatusResponse><result><checkOnly>false</checkOnly>
<details><componentSuccesses><fullName>package.xml</fullName><id>0Af000000000009</id><success>true</success></componentSuccesses></details>
<done>true</done><id>0Af5g00000ABCDE</id><status>Succeeded</status><success>true</success></result></checkDeployStatusResponse></soapenv:Body></soapenv:Envelope>"""

STATUS_COMPONENT_FAILURE = """<soapenv:Envelope xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/" xmlns="http://soap.sforce.com/2006/04/metadata">
<soapenv:Body><checkDeployStatusResponse><result><checkOnly>false</checkOnly>
<details>
<componentFailures><changed>false</changed><componentType>CustomObjectTranslation</componentType><created>false</created>
<fileName>objectTranslations/Account-fr.objectTranslation</fileName><fullName>Account-fr</fullName>
<problem>In field: name - no CustomField named Account.Foo__c found</problem><problemType>Error</problemType><success>false</success></componentFailures>
<componentSuccesses><fullName>package.xml</fullName><id>0Af000000000009</id><success>true</success></componentSuccesses>
</details>
<done>true</done><id>0Af5g00000ABCDE</id><numberComponentErrors>1</numberComponentErrors><status>Failed</status><success>false</success></result>
</checkDeployStatusResponse></soapenv:Body></soapenv:Envelope>"""

SOAP_FAULT = """<?xml version="1.0" encoding="UTF-8"?>
<soapenv:Envelope xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/" xmlns:sf="urn:fault.partner.soap.sforce.com">
<soapenv:Body><soapenv:Fault><faultcode>sf:INVALID_SESSION_ID</faultcode>
<faultstring>INVALID_SESSION_ID: Invalid Session ID found in SessionHeader: Illegal Session</faultstring>
</soapenv:Fault></soapenv:Body></soapenv:Envelope>"""

COOKIES_TXT = "\n".join([
    "# Netscape HTTP Cookie File",
    ".acme--uat.sandbox.my.salesforce.com\tTRUE\t/\tTRUE\t2147483647\tsid\tAPI-TOKEN",
    "acme--uat.sandbox.lightning.force.com\tFALSE\t/\tTRUE\t2147483647\tsid\tFRONTEND-TOKEN",
    ".acme--uat.sandbox.my.salesforce.com\tTRUE\t/\tTRUE\t2147483647\toid\t00D000000000001",
    ".example.com\tTRUE\t/\tFALSE\t2147483647\tsid\tNOT-SALESFORCE",
    "",
])

PAGE_URL = "https://acme--uat.sandbox.lightning.force.com/lightning/r/Account/001000000000001/view"


@pytest.fixture
def cookie_file(tmp_path):
    path = tmp_path / "cookies.txt"
    path.write_text(COOKIES_TXT, encoding="utf-8")
    return path


@pytest.fixture
def bridge_env(monkeypatch, tmp_path, cookie_file):
    """Point settings at temp files and the sample page; no network timeouts."""
    monkeypatch.setenv("SFBRIDGE_COOKIE_FILE", str(cookie_file))
    monkeypatch.setenv("SFBRIDGE_STORED_SESSION_FILE", str(tmp_path / "stored_session.json"))
    monkeypatch.setenv("SFBRIDGE_PAGE_URL", PAGE_URL)
    monkeypatch.setenv("SFBRIDGE_DEPLOY_POLL_INTERVAL_SECONDS", "0")
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


# simple_salesforce stand-ins for RestClient(sf=...)

class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self.ok = status_code < 400
        self._payload = payload
        self.text = text
        self.content = text.encode() if text else (b"{}" if payload is not None else b"")

    def json(self):
        return self._payload


class FakeHttpSession:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        return self.response


class FakeSalesforce:
    """Records calls; returns canned results keyed by method."""

    headers = {"Authorization": "Bearer TOKEN"}

    def __init__(self, response=None, error=None, records=None, restful_results=None):
        self.calls = []
        self.restful_results = restful_results or {}
        self.error = error
        self.records = records if records is not None else []
        self.session = FakeHttpSession(response or FakeResponse(payload={}))

    def _result(self):
        if self.error:
            raise self.error
        return {
            "totalSize": len(self.records),
            "done": True,
            "records": [dict(r, attributes={"type": "X"}) for r in self.records],
        }

    def query(self, soql):
        self.calls.append(("query", soql))
        return self._result()

    def query_more(self, url, identifier_is_url=False):
        self.calls.append(("query_more", url, identifier_is_url))
        return self._result()

    def restful(self, path, **kwargs):
        self.calls.append(("restful", path))
        if self.error:
            raise self.error
        return self.restful_results.get(path, {"path": path})

    def toolingexecute(self, action, params=None):
        self.calls.append(("tooling", action, params["q"]))
        return self._result()

