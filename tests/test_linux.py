"""Tests for the simulated Linux utilities."""

from labterm.results import ErrorKind


class TestIdentity:
    """Tests for identity and system info commands."""

    def test_whoami(self, engine):
        """whoami reports the student."""
        assert engine.execute("whoami").output == "student"

    def test_id_under_sudo(self, engine):
        """sudo id reports root."""
        assert "uid=0(root)" in engine.execute("sudo id").output

    def test_hostname(self, engine):
        """hostname reports the lab host."""
        assert engine.execute("hostname").output == "kali"

    def test_uname_all(self, engine):
        """uname -a includes the kernel version."""
        assert "6.1.0-kali9-amd64" in engine.execute("uname -a").output

    def test_date_is_fixed(self, engine):
        """date returns the simulated clock."""
        assert engine.execute("date").output == "Mon Jan 15 10:30:00 WIB 2024"


class TestNavigation:
    """Tests for cd, pwd and ls."""

    def test_pwd(self, engine):
        """pwd returns the home directory initially."""
        assert engine.execute("pwd").output == "/home/student"

    def test_cd_absolute(self, engine):
        """cd with absolute path changes directory."""
        assert engine.execute("cd /tmp").success is True
        assert engine.execute("pwd").output == "/tmp"

    def test_cd_missing_leaves_cwd(self, engine):
        """cd into a missing path fails without moving."""
        result = engine.execute("cd /nonexistent")
        assert result.success is False
        assert "No such file or directory" in result.output
        assert engine.execute("pwd").output == "/home/student"

    def test_cd_dash(self, engine):
        """cd - returns to the previous directory."""
        engine.execute("cd /etc")
        assert engine.execute("cd -").output == "/home/student"

    def test_cd_dash_into_removed_dir(self, engine):
        """cd - refuses a previous directory that no longer exists."""
        engine.execute("mkdir gone")
        engine.execute("cd gone")
        engine.execute("cd ..")
        engine.execute("rm -r gone")
        result = engine.execute("cd -")
        assert result.success is False
        assert result.error_kind is ErrorKind.LOOKUP_MISS
        assert "No such file or directory" in result.output
        assert engine.execute("pwd").output == "/home/student"
        assert engine.execute("ls").success is True

    def test_cd_root_home_denied(self, engine):
        """The student cannot enter /root."""
        result = engine.execute("cd /root")
        assert result.error_kind is ErrorKind.PERMISSION_DENIED

    def test_ls_home(self, engine):
        """ls lists the lab files."""
        output = engine.execute("ls").output
        assert "targets.txt" in output
        assert ".bashrc" not in output

    def test_ls_all_shows_hidden(self, engine):
        """ls -a shows dot files."""
        assert ".bashrc" in engine.execute("ls -a").output

    def test_ls_long(self, engine):
        """ls -l renders permissions and owners."""
        output = engine.execute("ls -l").output
        assert output.startswith("total ")
        assert "-rw-r--r--" in output

    def test_ls_colors_directories(self, engine):
        """Directories are ANSI coloured."""
        assert "\x1b[1;34mDesktop\x1b[0m" in engine.execute("ls").output

    def test_ll_alias(self, engine):
        """ll is a long listing with hidden files."""
        assert ".bashrc" in engine.execute("ll").output


class TestFileCommands:
    """Tests for file reading and writing."""

    def test_cat_file(self, engine):
        """cat prints file contents."""
        assert "192.168.1.100" in engine.execute("cat targets.txt").output

    def test_cat_missing(self, engine):
        """cat on a missing file is a lookup miss."""
        result = engine.execute("cat nope.txt")
        assert result.success is False
        assert result.error_kind is ErrorKind.LOOKUP_MISS

    def test_cat_shadow_denied(self, engine):
        """/etc/shadow needs sudo."""
        result = engine.execute("cat /etc/shadow")
        assert result.output == "cat: /etc/shadow: Permission denied"
        assert result.error_kind is ErrorKind.PERMISSION_DENIED

    def test_sudo_cat_shadow(self, engine):
        """sudo cat /etc/shadow reads the file."""
        result = engine.execute("sudo cat /etc/shadow")
        assert result.success is True
        assert "root:$6$" in result.output

    def test_touch_and_rm(self, engine):
        """touch creates a file that rm removes."""
        engine.execute("touch scan.log")
        assert "scan.log" in engine.execute("ls").output
        engine.execute("rm scan.log")
        assert "scan.log" not in engine.execute("ls").output

    def test_mkdir_parents(self, engine):
        """mkdir -p creates nested directories."""
        assert engine.execute("mkdir -p loot/hashes").success is True
        assert engine.execute("cd loot/hashes").success is True

    def test_mkdir_in_etc_denied(self, engine):
        """Root-owned directories are not writable without sudo."""
        assert engine.execute("mkdir /etc/x").error_kind is ErrorKind.PERMISSION_DENIED
        assert engine.execute("sudo mkdir /etc/x").success is True

    def test_rm_directory_needs_recursive(self, engine):
        """rm on a directory needs -r."""
        assert engine.execute("rm Desktop").success is False
        assert engine.execute("rm -r Desktop").success is True

    def test_rm_root_refused_even_with_sudo(self, engine):
        """rm -rf / is always refused."""
        result = engine.execute("sudo rm -rf /")
        assert result.success is False
        assert "preserve-root" in result.output or "failsafe" in result.output

    def test_cp_and_mv(self, engine):
        """cp copies and mv renames."""
        engine.execute("cp notes.txt copy.txt")
        engine.execute("mv copy.txt moved.txt")
        listing = engine.execute("ls").output
        assert "moved.txt" in listing
        assert "copy.txt" not in listing

    def test_mv_current_directory_follows_cwd(self, engine):
        """Moving the working directory keeps cwd pointing at it."""
        engine.execute("mkdir -p d/sub")
        engine.execute("cd d/sub")
        assert engine.execute("mv /home/student/d /home/student/e").success is True
        assert engine.execute("pwd").output == "/home/student/e/sub"
        assert engine.execute("ls").success is True

    def test_mv_cwd_itself(self, engine):
        """Renaming the working directory moves cwd with it."""
        engine.execute("mkdir d")
        engine.execute("cd d")
        engine.execute("mv /home/student/d /home/student/e")
        assert engine.execute("pwd").output == "/home/student/e"

    def test_chmod_octal(self, engine):
        """chmod 700 changes the mode string."""
        engine.execute("chmod 700 notes.txt")
        assert "-rwx------" in engine.execute("ls -l notes.txt").output

    def test_chmod_invalid(self, engine):
        """An invalid mode is a usage error."""
        assert engine.execute("chmod zz notes.txt").error_kind is ErrorKind.USAGE

    def test_find_by_name(self, engine):
        """find -name matches globs and awards a point."""
        result = engine.execute("find /home/student -name '*.txt'")
        assert "/home/student/notes.txt" in result.output
        assert result.points_awarded == 1

    def test_grep_on_file(self, engine):
        """grep reads a file operand."""
        result = engine.execute("grep Apache targets.txt")
        assert "192.168.1.100" in result.output
        assert result.points_awarded == 1

    def test_wc_on_file(self, engine):
        """wc -l on a file appends the filename."""
        assert engine.execute("wc -l wordlist.txt").output == "15 wordlist.txt"

    def test_stat(self, engine):
        """stat shows the file name and size."""
        output = engine.execute("stat notes.txt").output
        assert "notes.txt" in output


class TestEnvironment:
    """Tests for echo, export and aliases."""

    def test_echo_expands_variables(self, engine):
        """echo expands $VAR and ${VAR}."""
        assert engine.execute("echo $USER ${HOME}").output == "student /home/student"

    def test_export_then_echo(self, engine):
        """Exported variables are visible to echo."""
        engine.execute("export TARGET=192.168.1.100")
        assert engine.execute("echo $TARGET").output == "192.168.1.100"

    def test_alias_defined_and_used(self, engine):
        """A user alias expands to its command."""
        engine.execute("alias me='whoami'")
        assert engine.execute("me").output == "student"

    def test_history_excludes_history(self, engine):
        """history lists earlier lines but not itself."""
        engine.execute("pwd")
        engine.execute("whoami")
        output = engine.execute("history").output
        assert "pwd" in output and "whoami" in output
        assert "history" not in output

    def test_history_cannot_be_cleared(self, engine):
        """history -c leaves earlier lines in place."""
        engine.execute("pwd")
        assert engine.execute("history -c").success is True
        assert "pwd" in engine.history()
        assert "pwd" in engine.execute("history").output


class TestJobs:
    """Tests for background jobs."""

    def test_background_creates_job(self, engine):
        """A trailing & registers a job."""
        result = engine.execute("sleep 100 &")
        assert result.output.startswith("[1] ")
        assert "sleep 100" in engine.execute("jobs").output

    def test_kill_job(self, engine):
        """kill %n terminates the job."""
        engine.execute("sleep 100 &")
        assert "Terminated" in engine.execute("kill %1").output
        assert engine.execute("jobs").output == ""

    def test_kill_init_refused(self, engine):
        """PID 1 cannot be killed."""
        assert engine.execute("sudo kill 1").error_kind is ErrorKind.PERMISSION_DENIED

    def test_fg_without_jobs(self, engine):
        """fg with no jobs is a state error."""
        assert engine.execute("fg").error_kind is ErrorKind.STATE

    def test_fg_runs_job(self, engine):
        """fg runs the job command and removes it."""
        engine.execute("whoami &")
        result = engine.execute("fg %1")
        assert result.output == "whoami\nstudent"
        assert engine.execute("jobs").output == ""


class TestNetworking:
    """Tests for network inspection commands."""

    def test_ifconfig_points(self, engine):
        """ifconfig awards 2 points."""
        result = engine.execute("ifconfig")
        assert "192.168.1.50" in result.output
        assert result.points_awarded == 2

    def test_ping(self, engine):
        """ping -c 2 sends two packets."""
        result = engine.execute("ping -c 2 192.168.1.100")
        assert result.success is True
        assert result.points_awarded == 2

    def test_netstat_points(self, engine):
        """netstat awards 3 points."""
        assert engine.execute("netstat -tulpn").points_awarded == 3

    def test_curl(self, engine):
        """curl fetches a simulated page."""
        result = engine.execute("curl http://192.168.1.100")
        assert result.success is True
        assert result.points_awarded == 3

    def test_ssh_refused(self, engine):
        """Outgoing ssh is refused."""
        assert "Connection refused" in engine.execute("ssh root@192.168.1.100").output


class TestSystem:
    """Tests for privileged notices and exit."""

    def test_apt_without_sudo(self, engine):
        """apt install needs root."""
        assert engine.execute("apt install nmap").error_kind is ErrorKind.PERMISSION_DENIED

    def test_sudo_apt_notice(self, engine):
        """sudo apt prints the simulated notice."""
        assert "simulated environment" in engine.execute("sudo apt update").output

    def test_exit_requests_logout(self, engine):
        """exit outside msfconsole requests logout."""
        result = engine.execute("exit")
        assert result.output == "logout"
        assert engine.session().logout_requested is True

    def test_sudo_list(self, engine):
        """sudo -l lists the rights."""
        assert "NOPASSWD: /usr/bin/find" in engine.execute("sudo -l").output
