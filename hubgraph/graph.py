"""
Event-to-graph transformation.

Every repository seen in a batch becomes a hub node (group 0) and every event
becomes a leaf node linked to its repository. Event groups drive the node
colours of the frontend graph, so the classification table must stay stable.
"""

from typing import Dict, List, NamedTuple, Sequence, Tuple

from loguru import logger

from hubgraph.models import Event, GraphLink, GraphNode

REPO_GROUP = 0
UNKNOWN_EVENT: Tuple[int, str] = (99, "Unknown event")

# https://docs.github.com/en/rest/using-the-rest-api/github-event-types
EVENT_CLASSIFICATION: Dict[str, Tuple[int, str]] = {
    "CommitCommentEvent": (1, "Comment to commit"),
    "CreateEvent": (2, "New repo created"),
    "DeleteEvent": (3, "Something has been deleted"),
    "ForkEvent": (4, "Repo has been forked"),  # fired on the parent repo
    "GollumEvent": (5, "Wiki page edited"),
    "IssueCommentEvent": (6, "Issue has been commented"),
    "IssuesEvent": (7, "An issue has changed"),
    "MemberEvent": (8, "New collaborator added"),
    "PublicEvent": (9, "Repo made public!"),
    "PullRequestEvent": (10, "New pull request"),
    "PullRequestReviewCommentEvent": (11, "PR's code has been commented"),
    "PushEvent": (12, "New commit pushed"),
    "ReleaseEvent": (13, "New release created"),
    "WatchEvent": (14, "Repo has been starred"),
}


class GraphData(NamedTuple):
    nodes: List[GraphNode]
    links: List[GraphLink]


def classify_event(event_type: str) -> Tuple[int, str]:
    """Return the (group, title) pair used to render an event type"""
    return EVENT_CLASSIFICATION.get(event_type, UNKNOWN_EVENT)


def extract_repo_nodes(events: Sequence[Event]) -> List[GraphNode]:
    """One node per distinct repository, in first-seen order"""
    seen: Dict[str, None] = {}
    for event in events:
        seen.setdefault(event.repo_name, None)
    return [GraphNode(id=repo_name, group=REPO_GROUP, title="") for repo_name in seen]


def extract_event_nodes_and_links(events: Sequence[Event]) -> GraphData:
    nodes: List[GraphNode] = []
    links: List[GraphLink] = []
    for event in events:
        group, title = classify_event(event.type)
        nodes.append(GraphNode(id=event.id, group=group, title=title))
        links.append(GraphLink(source=event.repo_name, target=event.id, weight=1))
    return GraphData(nodes, links)


def build_graph(events: Sequence[Event]) -> GraphData:
    """Fold a batch of events into graph nodes and links, preserving input order"""
    repo_nodes = extract_repo_nodes(events)
    event_nodes, links = extract_event_nodes_and_links(events)

    logger.debug(f"Built graph with {len(repo_nodes)} repos and {len(event_nodes)} events")

    return GraphData(repo_nodes + event_nodes, links)
