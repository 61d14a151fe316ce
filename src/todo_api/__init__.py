"""
FastAPI Todo backend package.

The application is built by `todo_api.main.create_app`; `todo_api.main.app` is
the instance served by `python -m todo_api`. `todo_api.client.TodoClient`
talks to a running server over HTTP.
"""
