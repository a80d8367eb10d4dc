"""
CLI commands for the knowledge base: knowledge metrics, knowledge learn
"""

import json
import sys
from .base import _init_knowledge
from ..core.exceptions import ValidationError, SecurityError
from ..core.learning_engine import LearningEngine


def cmd_knowledge_metrics(args):
    """Print metrics derived from the decision history"""
    try:
        knowledge_base, _ = _init_knowledge(args)
    except (ValidationError, SecurityError) as e:
        print(f"❌ Could not load knowledge: {e}", file=sys.stderr)
        sys.exit(1)

    metrics = knowledge_base.get_metrics()
    if args.json:
        print(json.dumps(metrics.to_dict(), indent=2))
        return

    print("\n📈 Project metrics")
    print("=" * 60)
    print(f"  Tasks: {metrics.total_tasks} ({metrics.completed_tasks} successful)")
    print(f"  Success rate: {metrics.success_rate:.0%}")
    print(f"  Average quality: {metrics.average_quality:.2f}")
    print(f"  Average execution time: {metrics.average_execution_time:.2f}s")
    if metrics.most_effective_agents:
        print("\n  Most effective agents:")
        for entry in metrics.most_effective_agents:
            print(f"    - {entry['agent_id']}: {entry['success_rate']:.0%}")
    if metrics.common_patterns:
        print(f"\n  Common patterns: {', '.join(metrics.common_patterns)}")


def cmd_knowledge_learn(args):
    """Run one learning pass and persist the resulting strategies"""
    try:
        knowledge_base, events = _init_knowledge(args)
        engine = LearningEngine(knowledge_base, event_logger=events)
        engine.load_strategies()
    except (ValidationError, SecurityError) as e:
        print(f"❌ Could not load knowledge: {e}", file=sys.stderr)
        sys.exit(1)

    learned = engine.learn()
    events.flush()
    if not learned:
        print("⏳ No successful decisions yet; strategies unchanged")
        return

    if not engine.save_strategies():
        print(f"❌ Could not save strategies to {engine.strategies_file}", file=sys.stderr)
        sys.exit(1)

    print("✅ Learning pass complete")
    for task_type, strategy in sorted(engine.strategies.items(), key=lambda item: item[0].value):
        print(f"  {task_type.value}: {', '.join(strategy.preferred_agents)}")
    print("\n⚖️  Evaluation weights:")
    for criterion, weight in engine.get_evaluation_weights().items():
        print(f"  {criterion}: {weight:.3f}")
