"""
Seed a local database with demo users, polls, votes and comments.

Run with:
    python seed_db.py
"""

import asyncio

from polly.database import Base, async_session, engine
from polly.models.user import User
from polly.schemas.poll import PollCreate
from polly.services.discussions import DiscussionService
from polly.services.polls import PollService
from polly.services.votes import VoteService


async def async_main():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        # Create users
        u1 = User(email="alice@example.com", full_name="Alice Liddell", oauth_provider="github", oauth_id="1001")
        u2 = User(email="bob@example.com", full_name="Bob Marley", oauth_provider="google", oauth_id="1002")
        u3 = User(email="charlie@example.com", oauth_provider="github", oauth_id="1003")
        session.add_all([u1, u2, u3])
        await session.flush()

        polls = PollService(session)
        lunch = await polls.create(u1.id, PollCreate(
            title="Where should we go for the team lunch?",
            description="Friday, 12:30. Pick one.",
            options=["Pizza place", "Ramen bar", "Salad spot"],
        ))
        stack = await polls.create(u2.id, PollCreate(
            title="Which languages do you use at work?",
            options=["Python", "TypeScript", "Go", "Rust"],
            allow_multiple_votes=True,
        ))
        secret = await polls.create(u1.id, PollCreate(
            title="How was this sprint?",
            options=["Great", "Fine", "Rough"],
            is_anonymous=True,
        ))

        votes = VoteService(session)
        await votes.create(lunch.id, lunch.options[1].id, voter_id=u2.id)
        await votes.create(lunch.id, lunch.options[1].id, voter_id=u3.id)
        await votes.create(lunch.id, lunch.options[0].id, voter_ip="198.51.100.23")
        await votes.create(stack.id, stack.options[0].id, voter_id=u1.id)
        await votes.create(stack.id, stack.options[1].id, voter_id=u1.id)
        await votes.create(stack.id, stack.options[2].id, voter_id=u3.id)
        await votes.create(secret.id, secret.options[1].id, voter_ip="198.51.100.40")

        threads = DiscussionService(session)
        root = await threads.create_thread(lunch.id, u2.id, "Ramen, it's raining anyway.")
        await threads.create_thread(lunch.id, u1.id, "Good point!", parent_id=root.id)
        await threads.create_thread(stack.id, u3.id, "Does SQL count as a language?")

        await session.commit()

        for poll in (lunch, stack, secret):
            print(f"{poll.title} -> /polls/{poll.share_token}")

    await engine.dispose()
    print("Database seeded successfully!")


if __name__ == "__main__":
    asyncio.run(async_main())
