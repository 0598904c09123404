"""
Label resolution for container metrics.

The set of label names is fixed once at startup (the "label universe"):
``id``, ``image``, ``name`` plus every user-defined container label seen on
the containers running at that time. Series created later always carry
exactly that set; user labels first seen afterwards are dropped.
"""

import logging
import re
from typing import Dict, Iterable, List, Sequence, Tuple

logger = logging.getLogger(__name__)

_INVALID_LABEL_CHARS = re.compile(r'[^a-zA-Z0-9_]')

LABEL_PREFIX = 'container_label_'
ID_PREFIX = '/docker/'
FIXED_LABELS = ('id', 'image', 'name')
INTERFACE_LABEL = 'interface'


def normalize_label(label: str) -> str:
    """
    Turn a Docker label key into a valid Prometheus label name.

    ``com.docker.compose.project`` becomes
    ``container_label_com_docker_compose_project``. Other characters that
    are not allowed in a label name (``-``, ``/``) are replaced the same way.
    """
    return LABEL_PREFIX + _INVALID_LABEL_CHARS.sub('_', label.replace('.', '_'))


def build_label_universe(infos: Iterable) -> Tuple[str, ...]:
    """
    Compute the label names shared by every container series.

    Args:
        infos: ContainerInfo objects observed during the bootstrap pass.

    Returns:
        The fixed names followed by the sorted normalized user labels.
    """
    user_labels = set()
    for info in infos:
        user_labels.update(normalize_label(key) for key in info.labels)
    user_labels.difference_update(FIXED_LABELS)
    return FIXED_LABELS + tuple(sorted(user_labels))


def resolve_labels(info, universe: Sequence[str]) -> Dict[str, str]:
    """
    Build the label values for one container, restricted to ``universe``.

    Universe labels the container does not carry are set to an empty string,
    which the exposition format treats the same as an absent label.
    """
    labels = {name: '' for name in universe}
    for key, value in info.labels.items():
        normalized = normalize_label(key)
        if normalized in labels:
            labels[normalized] = '' if value is None else str(value)

    labels['id'] = ID_PREFIX + info.id
    labels['image'] = info.image
    labels['name'] = info.name
    return labels


def network_labels(labels: Dict[str, str], interface: str) -> Dict[str, str]:
    """Container labels plus the ``interface`` label for network series."""
    result = dict(labels)
    result[INTERFACE_LABEL] = interface
    return result


def _endpoint_matches(stats_key: str, endpoint_id: str) -> bool:
    if not stats_key or not endpoint_id:
        return False
    key = stats_key.lower()
    endpoint = endpoint_id.lower()
    return key.startswith(endpoint) or endpoint.startswith(key)


def resolve_interface_names(networks: Sequence, stats_keys: Sequence[str]) -> Dict[str, str]:
    """
    Pair stats interface keys with the logical network names from inspect.

    On Windows the stats ``networks`` map is keyed by endpoint id, so a key is
    first matched against the endpoint ids of the attached networks. Keys that
    match nothing are paired by position with the networks left over, in the
    order the daemon reported them. A key with no network left keeps its own
    name.

    Args:
        networks: NetworkEndpoint objects in inspect payload order.
        stats_keys: Interface keys of the stats payload, in payload order.

    Returns:
        Mapping of stats key to interface label value.
    """
    names: Dict[str, str] = {}
    unclaimed: List = list(networks)

    for key in stats_keys:
        for network in unclaimed:
            if _endpoint_matches(key, network.endpoint_id):
                names[key] = network.name
                unclaimed.remove(network)
                break

    for key in stats_keys:
        if key in names:
            continue
        if unclaimed:
            names[key] = unclaimed.pop(0).name
            logger.debug(f"Interface {key} paired with network {names[key]} by position")
        else:
            names[key] = key

    return names
