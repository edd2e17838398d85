from guestbook.main import run

run()
