from quizgen.cli.quiz_cli import main

main()
