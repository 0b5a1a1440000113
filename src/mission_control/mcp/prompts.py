"""MCP prompt templates for agent routines."""

from mission_control.mcp.server import mcp


@mcp.prompt()
def check_in(agent_id: str) -> str:
    """Generate the routine an agent follows on every wake-up."""
    return (
        f"You are agent '{agent_id}'.\n\n"
        f"1. Call the heartbeat tool with agent_id='{agent_id}'.\n"
        f"2. Read the notifications it returns. For each one, open the linked task "
        f"with get_task and act on it.\n"
        f"3. Reply in the task thread with post_message. Mention teammates as @Name "
        f"when you need them.\n"
        f"4. Move tasks forward with update_task_status as your work progresses.\n"
        f"5. Acknowledge each handled notification with mark_notification_delivered."
    )


@mcp.prompt()
def standup_report(workspace_id: str) -> str:
    """Generate a prompt for a workspace standup."""
    return (
        f"Please write a standup report for the '{workspace_id}' workspace.\n\n"
        f"Use get_workspace for the task summary, list_tasks for details and "
        f"list_activities for what happened recently, then report:\n"
        f"1. What was finished\n"
        f"2. What is in progress and who owns it\n"
        f"3. What is blocked or waiting for review\n"
        f"4. Agents that have not checked in"
    )
