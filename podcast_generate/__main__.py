from podcast_generate.cli import main

main()
