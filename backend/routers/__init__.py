"""EduConnect HTTP routers: chat, posts and analytics."""
