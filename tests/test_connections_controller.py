import pytest

from spokeagent.connections_controller import (
    Connection,
    ConnectionsStatusController,
    ConnectionStatus,
    GatewayStatus,
    HAStatus,
    Submariner,
)
from spokeagent.model import (
    ConditionStatus,
    ConflictError,
    EventRecorder,
    NotFoundError,
    find_status_condition,
    set_status_condition,
)

CLUSTER_NAME = "test"
SUBMARINER_NS = "submariner-ns"
KEY = f"{SUBMARINER_NS}/submariner"

ESTABLISHED = (ConditionStatus.FALSE, "ConnectionsEstablished")
NOT_ESTABLISHED = (ConditionStatus.TRUE, "ConnectionsNotEstablished")
DEGRADED = (ConditionStatus.TRUE, "ConnectionsDegraded")


class HubAddOn:
    """Records add-on conditions; raises the queued errors first."""

    def __init__(self, *errors):
        self.conditions = []
        self.pending = list(errors)

    def update_status_condition(self, cluster_name, condition):
        assert cluster_name == CLUSTER_NAME
        if self.pending:
            raise self.pending.pop(0)
        return list(self.conditions), set_status_condition(self.conditions, condition)

    @property
    def current(self):
        return find_status_condition(self.conditions, "SubmarinerConnectionDegraded")

    @property
    def state(self):
        condition = self.current
        return None if condition is None else (condition.status, condition.reason)


@pytest.fixture
def submariner():
    return Submariner(
        name="submariner",
        namespace=SUBMARINER_NS,
        gateways=[
            GatewayStatus(
                HAStatus.ACTIVE,
                [
                    Connection(ConnectionStatus.CONNECTED, "cluster1"),
                    Connection(ConnectionStatus.CONNECTED, "cluster2"),
                ],
            ),
            GatewayStatus(HAStatus.PASSIVE, [Connection(ConnectionStatus.ERROR, "cluster1")]),
        ],
    )


def make_controller(*subs, hub=None):
    hub = hub or HubAddOn()
    store = {(sub.namespace, sub.name): sub for sub in subs}

    def lister(namespace, name):
        if (namespace, name) not in store:
            raise NotFoundError(name)
        return store[(namespace, name)]

    return ConnectionsStatusController(CLUSTER_NAME, hub, lister, EventRecorder("test")), hub


def synced(*subs):
    controller, hub = make_controller(*subs)
    controller.sync(KEY)
    return hub


def test_all_connections_established(submariner):
    hub = synced(submariner)
    assert hub.state == ESTABLISHED
    assert hub.current.message == (
        'The connection between clusters "test" and "cluster1" is established\n'
        'The connection between clusters "test" and "cluster2" is established'
    )


def test_transition_after_initially_not_established(submariner):
    original, submariner.gateways = submariner.gateways, None
    controller, hub = make_controller(submariner)
    controller.sync(KEY)
    assert hub.state == NOT_ESTABLISHED
    submariner.gateways = original
    controller.sync(KEY)
    assert hub.state == ESTABLISHED


@pytest.mark.parametrize("status", [ConnectionStatus.CONNECTING, ConnectionStatus.ERROR])
def test_active_connection_not_connected_is_degraded(submariner, status):
    submariner.gateways[0].connections[0].status = status
    assert synced(submariner).state == DEGRADED


def test_degraded_message_lists_connected_first(submariner):
    submariner.gateways[0].connections[0] = Connection(ConnectionStatus.CONNECTING, "cluster1")
    controller, _ = make_controller(submariner)
    assert controller.check_submariner_connections(submariner).message == (
        'The connection between clusters "test" and "cluster2" is established\n'
        'The connection between clusters "test" and "cluster1" is not established '
        "(status=connecting)"
    )


@pytest.mark.parametrize(
    "mutate",
    [
        lambda sub: setattr(sub, "gateways", None),
        lambda sub: setattr(sub, "gateways", []),
        lambda sub: setattr(sub.gateways[0], "connections", []),
    ],
    ids=["status-absent", "no-gateways", "no-active-connections"],
)
def test_no_connections(submariner, mutate):
    mutate(submariner)
    hub = synced(submariner)
    assert hub.state == NOT_ESTABLISHED
    assert hub.current.message == "There are no connections on gateways"


@pytest.mark.parametrize(
    "error", [RuntimeError("fake error"), ConflictError("conflict")], ids=["error", "conflict"]
)
def test_update_initially_fails(submariner, error):
    controller, hub = make_controller(submariner, hub=HubAddOn(error))
    with pytest.raises(type(error)):
        controller.sync(KEY)
    assert hub.state is None
    controller.sync(KEY)
    assert hub.state == ESTABLISHED


def test_missing_submariner_is_ignored():
    controller, hub = make_controller()
    assert controller.sync(KEY) is None
    assert hub.state is None


def test_unknown_connection_status_rejected():
    with pytest.raises(ValueError):
        Connection("bogus", "cluster1")
    assert Connection("connected", "cluster1").status == ConnectionStatus.CONNECTED