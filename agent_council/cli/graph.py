"""
CLI commands for the dependency graph: graph build, graph impact, graph related
"""

import json
import sys
from .base import _init_graph
from ..core.enums import ChangeType
from ..core.exceptions import OrchestrationError, SecurityError, ValidationError
from ..core.models import FileChange


def cmd_graph_build(args):
    """Rebuild the dependency graph and persist the snapshot"""
    try:
        graph = _init_graph(args)
        count = graph.build_graph()
        graph.event_logger.flush()
        print(f"✅ Dependency graph built: {count} files")
        print(f"💾 Snapshot: {graph.snapshot_file}")
    except (OrchestrationError, ValidationError, SecurityError) as e:
        print(f"❌ Graph build failed: {e}", file=sys.stderr)
        sys.exit(1)


def cmd_graph_impact(args):
    """Show which files a set of changes affects"""
    try:
        graph = _init_graph(args)
        graph.initialize()
        change_type = ChangeType(args.type)
        analysis = graph.get_impact_analysis(FileChange(file=f, type=change_type) for f in args.files)
        graph.event_logger.flush()
    except (OrchestrationError, ValidationError, SecurityError) as e:
        print(f"❌ Impact analysis failed: {e}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        print(json.dumps(analysis.to_dict(), indent=2))
        return

    print(f"📊 Impact level: {analysis.impact_level.value} ({analysis.total_affected} files)")
    print("\nDirectly affected:")
    for path in sorted(analysis.directly_affected) or ["(none)"]:
        print(f"  - {path}")
    if analysis.indirectly_affected:
        print("\nIndirectly affected:")
        for path in sorted(analysis.indirectly_affected):
            print(f"  - {path}")
    if analysis.risks:
        print("\n⚠️  Risks:")
        for risk in analysis.risks:
            print(f"  - {risk}")


def cmd_graph_related(args):
    """List files reachable from a file in either direction"""
    try:
        graph = _init_graph(args)
        graph.initialize()
        related = graph.find_related_files(args.file, depth=args.depth)
        graph.event_logger.flush()
    except (OrchestrationError, ValidationError, SecurityError) as e:
        print(f"❌ Lookup failed: {e}", file=sys.stderr)
        sys.exit(1)

    if not related:
        print(f"⏳ No related files for {args.file}")
        return
    print(f"🔗 Related to {args.file} (depth {args.depth}):")
    for path in related:
        print(f"  - {path}")
