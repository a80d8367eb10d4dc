"""
CLI parser setup.
"""

import argparse
from .graph import cmd_graph_build, cmd_graph_impact, cmd_graph_related
from .knowledge import cmd_knowledge_metrics, cmd_knowledge_learn


def setup_parser():
    parser = argparse.ArgumentParser(
        prog="agent-council",
        description="Agent Council command line tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s graph build
  %(prog)s graph impact src/a.ts --type modify
  %(prog)s graph related src/a.ts --depth 2
  %(prog)s knowledge metrics
  %(prog)s knowledge learn
        """
    )

    parser.add_argument("--workspace", "-w", help="Workspace path (default: current directory)")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # graph
    graph_parser = subparsers.add_parser("graph", help="Dependency graph commands")
    graph_sub = graph_parser.add_subparsers(dest="graph_command", help="Graph commands")

    build_parser = graph_sub.add_parser("build", help="Rebuild the dependency graph")
    build_parser.set_defaults(func=cmd_graph_build)

    impact_parser = graph_sub.add_parser("impact", help="Show the impact of changing files")
    impact_parser.add_argument("files", nargs="+", help="Workspace-relative file paths")
    impact_parser.add_argument("--type", "-t", choices=["create", "modify", "delete"], default="modify",
                               help="Change type (default: modify)")
    impact_parser.add_argument("--json", action="store_true", help="Print the analysis as JSON")
    impact_parser.set_defaults(func=cmd_graph_impact)

    related_parser = graph_sub.add_parser("related", help="List files related to a file")
    related_parser.add_argument("file", help="Workspace-relative file path")
    related_parser.add_argument("--depth", "-d", type=int, default=1, help="Traversal depth (default: 1)")
    related_parser.set_defaults(func=cmd_graph_related)

    # knowledge
    knowledge_parser = subparsers.add_parser("knowledge", help="Knowledge base commands")
    knowledge_sub = knowledge_parser.add_subparsers(dest="knowledge_command", help="Knowledge commands")

    metrics_parser = knowledge_sub.add_parser("metrics", help="Show project metrics")
    metrics_parser.add_argument("--json", action="store_true", help="Print metrics as JSON")
    metrics_parser.set_defaults(func=cmd_knowledge_metrics)

    learn_parser = knowledge_sub.add_parser("learn", help="Run a learning pass over decision history")
    learn_parser.set_defaults(func=cmd_knowledge_learn)

    return parser
